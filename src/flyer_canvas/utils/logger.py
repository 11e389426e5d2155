"""Global logging and error handling utilities"""
import sys
import logging
import traceback

# Detect debug mode - True if running from source, False if packaged
DEBUG_MODE = not getattr(sys, 'frozen', False)

LOG_FORMAT = '%(asctime)s %(levelname)-7s %(name)s: %(message)s'

_error_sink = None


def setup_logging(level=logging.INFO, log_file=None):
    """Configure the root logger for the engine

    Args:
        level: Logging level for the console handler
        log_file: Optional path; when given, DEBUG and above also go to this file

    Returns:
        The configured root logger
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if log_file else level)

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    return root


def set_error_sink(callback):
    """Set a callback that receives (title, message) for user-facing errors

    The host UI registers this to show a popup; None removes it.
    """
    global _error_sink
    _error_sink = callback


def loggerRaise(e: Exception, user_message: str = None, title: str = "Error"):
    """Handle exceptions with optional user notification in release mode

    Args:
        e: The exception to handle
        user_message: User-friendly message to report (optional)
        title: Title for the notification

    In DEBUG_MODE:
        - Just raises the exception (shows full traceback)

    In RELEASE_MODE:
        - Logs the full traceback
        - Passes the user message to the error sink, if one is set
        - Then raises the exception
    """
    if DEBUG_MODE:
        raise e

    log = logging.getLogger('flyer_canvas')
    tb = ''.join(traceback.format_exception(type(e), e, e.__traceback__))
    log.error("%s\n%s", user_message or str(e), tb)

    message = user_message if user_message else str(e)
    if _error_sink:
        _error_sink(title, message)
    else:
        log.error("ERROR POPUP (no sink): %s - %s", title, message)

    raise e
