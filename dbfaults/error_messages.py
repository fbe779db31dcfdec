"""
Clear, actionable error message formatting.

All error messages follow the pattern:
  ERROR: [What failed]
    Reason: [Why it failed]
    Action: [What the test author should do]
    Location: [Where the problem is]
"""

import logging
from typing import Optional


def format_error(
    what_failed: str,
    reason: str,
    action: str,
    location: Optional[str] = None,
    details: Optional[str] = None
) -> str:
    """
    Format a clear, actionable error message.

    Args:
        what_failed: What operation failed (e.g., "Cannot register failure code")
        reason: Why it failed (e.g., "Code 1205 is already registered")
        action: What the caller should do (e.g., "Pass overwrite=True")
        location: Where the problem occurred (config file, catalog, script)
        details: Optional additional details

    Returns:
        Formatted error message
    """
    lines = [f"ERROR: {what_failed}"]
    lines.append(f"  Reason: {reason}")
    lines.append(f"  Action: {action}")

    if location:
        lines.append(f"  Location: {location}")

    if details:
        lines.append(f"  Details: {details}")

    return "\n".join(lines)


def log_error(
    what_failed: str,
    reason: str,
    action: str,
    location: Optional[str] = None,
    details: Optional[str] = None
):
    """
    Log a clear, actionable error message.

    Same parameters as format_error, but logs it directly.
    """
    message = format_error(what_failed, reason, action, location, details)
    logging.error(message)


def format_duplicate_code_error(code: int, existing_category: str) -> str:
    """Format duplicate catalog registration error."""
    return format_error(
        "Cannot register failure code",
        f"Code {code} is already registered as {existing_category}",
        "Pick an unused code or pass overwrite=True to replace the entry",
        location="failure catalog"
    )


def format_exhausted_sequence_error(length: int, calls: int) -> str:
    """Format strict-mode exhaustion error with exact call counts."""
    return format_error(
        "Scripted sequence exhausted",
        f"Call {calls} requested an outcome but only {length} were scripted",
        "Script more outcomes, or use sticky-tail mode to repeat the last one",
        location="scripted failure source"
    )


def format_config_error(field: str, value, expected: str, example=None) -> str:
    """Format a config validation error with an example value."""
    lines = [
        "ERROR: Invalid config value",
        f"  Field: {field}",
        f"  Value: {value!r} ({type(value).__name__})",
        f"  Expected: {expected}",
    ]
    if example is not None:
        lines.append(f"  Example: {example}")
    return "\n".join(lines)
