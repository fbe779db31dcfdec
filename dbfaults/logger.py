"""
Logging setup for dbfaults.
"""

import datetime
import glob
import logging
import os
from pathlib import Path


def setup_logging(log_folder: str = 'logs', max_log_files: int = 5, level: int = logging.INFO) -> Path:
    """
    Set up file logging.

    Args:
        log_folder: Directory to store log files
        max_log_files: Maximum number of log files to keep
        level: Root logger level

    Returns:
        Path to the current log file
    """
    logs_folder = Path(log_folder)
    os.makedirs(logs_folder, exist_ok=True)

    # Generate unique log file name
    current_time = datetime.datetime.now().strftime("%Y%m%d-%H%M%S")
    log_file = logs_folder / f'dbfaults-{current_time}.log'

    # Make room for the new file
    cleanup_old_logs(logs_folder, max_log_files - 1)

    log_formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    log_handler = logging.FileHandler(log_file)
    log_handler.setFormatter(log_formatter)

    logger = logging.getLogger()
    logger.setLevel(level)
    logger.addHandler(log_handler)

    return log_file


def cleanup_old_logs(logs_folder: Path, max_files: int):
    """
    Remove old log files, keeping only the most recent ones.

    Args:
        logs_folder: Directory containing log files
        max_files: Maximum number of log files to keep
    """
    existing_logs = sorted(glob.glob(str(logs_folder / 'dbfaults-*.log')))
    while len(existing_logs) > max(max_files, 0):
        try:
            os.remove(existing_logs.pop(0))
        except OSError as e:
            logging.warning(f"Could not remove old log file: {e}")
