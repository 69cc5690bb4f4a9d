import logging
import logging.handlers
import os
import sys
from typing import List, Tuple

import config

DEFAULT_LOG_FILE = "voicegate.log"


def _resolve_outputs(debug: bool) -> Tuple[List[str], str]:
    """Output names and log file path, preferring the DEBUG_* settings in debug mode."""
    outputs = getattr(config, "LOG_OUTPUTS", "stdout")
    log_file_path = getattr(config, "LOG_FILE_PATH", DEFAULT_LOG_FILE)
    if debug:
        outputs = getattr(config, "DEBUG_LOG_OUTPUTS", outputs)
        log_file_path = getattr(config, "DEBUG_LOG_FILE_PATH", log_file_path)
    names = [name.strip().lower() for name in outputs.split(",") if name.strip()]
    return names, log_file_path


def _file_handler(log_file_path: str, rotating: bool) -> logging.Handler:
    log_dir = os.path.dirname(log_file_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    if rotating:
        # Listening sessions can run for days; keep the audio-loop log bounded
        return logging.handlers.RotatingFileHandler(
            log_file_path,
            maxBytes=int(getattr(config, "LOG_MAX_BYTES", 5 * 1024 * 1024)),
            backupCount=int(getattr(config, "LOG_BACKUP_COUNT", 3)),
        )
    return logging.FileHandler(log_file_path)


def build_handlers(verbose: bool = True, debug: bool = False) -> List[logging.Handler]:
    """
    Build log handlers from the comma-separated LOG_OUTPUTS setting.

    Outputs: stdout, stderr, file, rotating. Unknown names are skipped;
    stdout is used when nothing usable is configured.
    """
    if not verbose:
        return []

    names, log_file_path = _resolve_outputs(debug)
    handlers: List[logging.Handler] = []

    for name in names:
        if name == "stdout":
            handlers.append(logging.StreamHandler(sys.stdout))
        elif name == "stderr":
            handlers.append(logging.StreamHandler(sys.stderr))
        elif name in ("file", "rotating"):
            handlers.append(_file_handler(log_file_path, rotating=name == "rotating"))

    return handlers or [logging.StreamHandler(sys.stdout)]
