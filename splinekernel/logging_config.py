"""Logger setup for the splinekernel package.

The library itself only creates module-level loggers; applications that want
to see the solver and search diagnostics call setup_logging() once.
"""
import logging
import sys

def setup_logging(level=logging.INFO, log_file=None):
    """Configure the 'splinekernel' logger.

    Parameters:
        level: logging level, e.g. logging.DEBUG to see iteration counts and
            residuals of every solve and search.
        log_file: optional path of a file to which the log is also written.

    Returns: the configured logger.
    """
    logger = logging.getLogger('splinekernel')
    logger.setLevel(level)

    # avoid duplicate output when called repeatedly
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s', datefmt='%H:%M:%S')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug('Logging initialized.')
    return logger
