"""
faultctl - inspect the failure catalog, classify codes and rehearse retry scripts.

Examples:
  faultctl catalog
  faultctl classify 1205
  faultctl classify 1222 --abort LockTimeout
  faultctl simulate -2 -2 ok:42 --max-attempts 3
"""

import argparse
import logging
import re
import sys
import time
from pathlib import Path
from typing import List, Optional

from colorama import Fore, Style, init

from dbfaults import (
    Config,
    Decision,
    DbFaultsError,
    EventEmitter,
    ExhaustionMode,
    FailureCategory,
    FailureClassifier,
    RetryPolicyExecutor,
    ScriptedFailureSource,
    ScriptedSequence,
    Success,
    SyntheticFailureFactory,
    VirtualClock,
    setup_logging,
)


# argparse keeps bare negative numbers positional but takes "-2,ok" or "-2:msg" for an option
DASHED_TOKEN = re.compile(r'^-\d')
NEGATIVE_NUMBER = re.compile(r'^-\d+$')

DECISION_COLORS = {
    Decision.RETRY: Fore.YELLOW,
    Decision.ABORT: Fore.RED,
    Decision.SURFACE: Fore.MAGENTA,
}


class Painter:
    """Applies colorama colors unless color output is disabled."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def __call__(self, color: str, text: str) -> str:
        if not self.enabled:
            return text
        return f"{color}{text}{Style.RESET_ALL}"


def parse_token(token: str, factory: SyntheticFailureFactory):
    """
    Parse one script token.

    ``-2`` / ``1205``  -> failure built from the catalog
    ``abort[:msg]``    -> coordinator transaction abort
    ``ok[:value]``     -> success (digits become an int)
    """
    token = token.strip()
    if not token:
        raise ValueError("Empty script token")

    head, _, rest = token.partition(':')
    head = head.lower()
    if head == 'ok':
        if not rest:
            return Success(None)
        return Success(int(rest) if rest.lstrip('-').isdigit() else rest)
    if head == 'abort':
        return factory.create_transaction_abort(rest or None)
    try:
        code = int(head)
    except ValueError:
        raise ValueError(f"Invalid script token {token!r}: expected a code, 'abort' or 'ok[:value]'")
    return factory.create(code, rest or None)


def parse_script(text: str, factory: SyntheticFailureFactory) -> ScriptedSequence:
    """Parse a comma-separated script such as ``-2,-2,ok:42``."""
    return ScriptedSequence.from_codes(
        *(parse_token(token, factory) for token in text.split(',')),
        factory=factory,
    )


def protect_script_tokens(argv: List[str]) -> List[str]:
    """Prefix dashed script tokens with a space so argparse reads them as positionals."""
    return [
        f" {arg}" if DASHED_TOKEN.match(arg) and not NEGATIVE_NUMBER.match(arg) else arg
        for arg in argv
    ]


def build_arg_parser() -> argparse.ArgumentParser:
    """Create the faultctl CLI parser."""
    parser = argparse.ArgumentParser(
        prog='faultctl',
        description="Synthetic database failure catalog, classifier and retry simulator.",
        epilog="Examples:\n"
               "  faultctl catalog\n"
               "  faultctl classify 1205\n"
               "  faultctl simulate -2 -2 ok:42 --max-attempts 3",
        formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument('--config', '-c', help='Path to config.json file')
    parser.add_argument('--log-folder', help='Write a log file to this folder')
    parser.add_argument('--no-color', action='store_true', help='Disable ANSI colors')

    commands = parser.add_subparsers(dest='command', required=True)

    commands.add_parser('catalog', help='List registered failure codes')

    classify_cmd = commands.add_parser('classify', help='Classify a failure code')
    classify_cmd.add_argument('code', help="Error code, or 'abort' for a coordinator abort")
    classify_cmd.add_argument('--message', help='Override the default message')
    classify_cmd.add_argument('--abort', action='append', default=[], metavar='CATEGORY',
                              help='Mark a category non-retryable (repeatable)')
    classify_cmd.add_argument('--retry', action='append', default=[], metavar='CATEGORY',
                              help='Mark a category retryable (repeatable)')

    simulate_cmd = commands.add_parser('simulate', help='Run the retry executor over a scripted sequence')
    simulate_cmd.add_argument('script', nargs='+', help="Outcomes in order, e.g. -2 1205 ok:42 (commas also separate)")
    simulate_cmd.add_argument('--max-attempts', type=int, help='Override configured max attempts')
    simulate_cmd.add_argument('--strict', action='store_true', help='Fail when the script runs out')
    simulate_cmd.add_argument('--real-time', action='store_true', help='Actually sleep between attempts')
    simulate_cmd.add_argument('--events', help='Append structured events to this JSON lines file')
    return parser


def cmd_catalog(config: Config, paint: Painter) -> int:
    catalog = config.build_catalog()
    print(paint(Fore.CYAN, f"{'CODE':>7}  {'CATEGORY':<17} {'RETRY':<6} MESSAGE"))
    for entry in catalog.entries():
        retry = paint(Fore.GREEN, 'yes   ') if entry.retryable else paint(Fore.RED, 'no    ')
        print(f"{entry.code:>7}  {entry.category.value:<17} {retry} {entry.default_message}")
    abort = catalog.coordinator_entry
    retry = paint(Fore.GREEN, 'yes   ') if abort.retryable else paint(Fore.RED, 'no    ')
    print(f"{'-':>7}  {abort.category.value:<17} {retry} {abort.default_message} ({abort.origin})")
    return 0


def cmd_classify(args, config: Config, paint: Painter) -> int:
    factory = SyntheticFailureFactory(config.build_catalog())
    token = args.code if args.message is None else f"{args.code}:{args.message}"
    descriptor = parse_token(token, factory)
    if isinstance(descriptor, Success):
        raise ValueError("classify expects a failure code, not 'ok'")

    overrides = {}
    for name in args.retry:
        overrides[FailureCategory.parse(name)] = True
    for name in args.abort:
        overrides[FailureCategory.parse(name)] = False

    decision = FailureClassifier().classify(descriptor, overrides)
    print(f"Code:      {descriptor.code if descriptor.code is not None else '-'}")
    print(f"Category:  {descriptor.category.value}")
    print(f"Origin:    {descriptor.origin}")
    print(f"Retryable: {'yes' if descriptor.retryable else 'no'}")
    print(f"Message:   {descriptor.message}")
    print(f"Decision:  {paint(DECISION_COLORS[decision], decision.value)}")
    return 0


def cmd_simulate(args, config: Config, paint: Painter) -> int:
    factory = SyntheticFailureFactory(config.build_catalog())
    sequence = parse_script(','.join(args.script), factory)
    mode = ExhaustionMode.STRICT if args.strict else config.exhaustion_mode
    emitter = EventEmitter(log_file=Path(args.events), enable_console=False) if args.events else None

    source = ScriptedFailureSource(sequence, mode=mode, emitter=emitter)
    policy = config.build_retry_policy(args.max_attempts)
    clock = VirtualClock()
    executor = RetryPolicyExecutor(sleep=time.sleep if args.real_time else clock, emitter=emitter)

    result = executor.execute(source.invoke, policy)

    for record in result.history:
        if record.succeeded:
            print(f"Attempt {record.attempt}: {paint(Fore.GREEN, 'success')} -> {record.value!r}")
            continue
        decision = paint(DECISION_COLORS[record.decision], record.decision.value)
        line = f"Attempt {record.attempt}: {record.failure.category.value} ({record.failure.code}) -> {decision}"
        if record.delay is not None:
            line += f", wait {record.delay:.3f}s"
        print(line)

    if result.ok:
        print(paint(Fore.GREEN, f"Succeeded after {result.attempts} attempt(s): {result.value!r}"))
        return 0
    print(paint(Fore.RED, f"Failed after {result.attempts} attempt(s): {result.failure.message}"))
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the faultctl command."""
    parser = build_arg_parser()
    if argv is None:
        argv = sys.argv[1:]
    args = parser.parse_args(protect_script_tokens(argv))

    if not args.no_color:
        init()
    paint = Painter(enabled=not args.no_color)

    config = Config(Path(args.config) if args.config else None)

    if args.log_folder:
        log_file = setup_logging(args.log_folder, config.max_log_files)
        logging.info(f"faultctl {args.command} started, log file: {log_file}")

    try:
        if args.command == 'catalog':
            return cmd_catalog(config, paint)
        if args.command == 'classify':
            return cmd_classify(args, config, paint)
        return cmd_simulate(args, config, paint)
    except (DbFaultsError, ValueError) as e:
        print(paint(Fore.RED, str(e)), file=sys.stderr)
        logging.error(f"faultctl {args.command} failed: {e}")
        return 2


if __name__ == '__main__':
    sys.exit(main())
