import logging

import config
from voicegate.logging_handlers import build_handlers

LOG_FORMAT = '%(asctime)s [%(levelname)-8s] %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logger(name, debug=False, verbose=True):
    """
    Setup a per-module logger (pass __name__).

    Handlers come from config.LOG_OUTPUTS (or DEBUG_LOG_OUTPUTS in debug
    mode), so audio-loop components and the replay tool log the same way.
    config.LOG_LEVEL, when set, overrides the INFO default; debug=True always
    wins. Calling again for an existing logger only raises it to DEBUG.

    Args:
        name: Logger name (typically __name__)
        debug: Enable debug level logging
        verbose: Enable console/file output

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        if debug:
            logger.setLevel(logging.DEBUG)
        return logger

    if debug:
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(getattr(config, 'LOG_LEVEL', 'INFO').upper())
    # Prevent double logging via root logger
    logger.propagate = False

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in build_handlers(verbose=verbose, debug=debug):
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def percent(level, digits=2):
    """Format a 0-1 level as a percentage: 0.0523 -> '5.23%'."""
    return f"{level * 100:.{digits}f}%"


def log_info(logger, message):
    logger.info(f"ℹ️  {message}")

def log_success(logger, message):
    logger.info(f"✅ {message}")

def log_warning(logger, message):
    logger.warning(f"⚠️  {message}")

def log_error(logger, message):
    logger.error(f"❌ {message}")

def log_debug(logger, message):
    logger.debug(f"🔍 {message}")

def log_vad(logger, message):
    """Speech/calibration lifecycle of the detectors"""
    logger.info(f"🎙️  {message}")

def log_transcript(logger, message):
    """Transcript verdicts"""
    logger.info(f"📝 {message}")
