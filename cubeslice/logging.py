from logging import FileHandler, Formatter, StreamHandler, getLogger

__all__ = [
    "logger_name",
    "get_logger",
    "create_logger",
]

logger_name = "cubeslice"
logger = None


def get_logger(path=None):
    """Get cubeslice default logger"""
    global logger

    if logger:
        return logger
    else:
        return create_logger(path)


def create_logger(path=None, level=None):
    """Create a default logger. Logs to the file `path` if given, otherwise
    to the standard error stream."""
    global logger
    logger = getLogger(logger_name)
    formatter = Formatter(fmt="%(asctime)s %(levelname)s %(message)s")

    if path:
        handler = FileHandler(path)
    else:
        handler = StreamHandler()

    handler.setFormatter(formatter)

    # Re-creating the logger replaces the handler installed previously
    for old in list(logger.handlers):
        logger.removeHandler(old)
    logger.addHandler(handler)

    if level:
        logger.setLevel(str(level).upper())

    return logger
