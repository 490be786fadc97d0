from functools import partial, partialmethod
import logging

# modified from MOSCOT: https://github.com/theislab/moscot/blob/main/src/moscot/_logging.py

__all__ = ["logger", "set_verbose", "set_package_verbose"]

# Note: custom MSG level sits above WARNING so notices (e.g., default substitutions)
# are shown by default, TRACE sits between DEBUG and INFO for per-iteration output.

CUSTOM_LEVEL = logging.WARNING + 5
logging.MSG = CUSTOM_LEVEL
logging.addLevelName(logging.MSG, 'MSG')
logging.Logger.msg = partialmethod(logging.Logger.log, logging.MSG)
logging.msg = partial(logging.log, logging.MSG)

logging.TRACE = logging.DEBUG + 5
logging.addLevelName(logging.TRACE, 'TRACE')
logging.Logger.trace = partialmethod(logging.Logger.log, logging.TRACE)
logging.trace = partial(logging.log, logging.TRACE)

_LEVELS = {"DEBUG": logging.DEBUG,
           "TRACE": logging.TRACE,
           "INFO": logging.INFO,
           "WARN": logging.WARNING,
           "MSG": logging.MSG,
           "ERROR": logging.ERROR}


def _gen_logger(name='') -> "logging.Logger":
    from rich.console import Console
    from rich.logging import RichHandler

    logger = logging.getLogger(name)

    # loggers are cached by name, only attach the handler once
    if any(isinstance(h, RichHandler) for h in logger.handlers):
        return logger

    logging.captureWarnings(True)

    logger.setLevel(logging.WARN)
    console = Console()
    ch = RichHandler(console=console,
                     show_level=False,
                     show_path=False,
                     show_time=False,
                     keywords=RichHandler.KEYWORDS + ['TRACE', 'MSG'],
                     )

    log_formatter = logging.Formatter(fmt="%(name)s: %(asctime)s | %(levelname)s | %(module)s:%(funcName)s:%(lineno)s | >>> %(message)s",
                                      datefmt='%m/%d/%Y %I:%M:%S  %p')
    ch.setFormatter(log_formatter)
    logger.addHandler(ch)

    # this prevents double outputs
    logger.propagate = False
    return logger


logger = _gen_logger(name='trajflow')


def set_verbose(logger, verbose="ERROR"):
    """ Set logger verbosity.

    Parameters
    ----------
    logger : `logging.Logger`
        The logger, as returned by ``_gen_logger``.
    verbose: {"DEBUG", "TRACE", "INFO", "WARN", "MSG", "ERROR"}
        Verbose level. (Default = "ERROR")

        Options :

            - "DEBUG": show all output logs.
            - "TRACE": show detailed process logs, e.g., the distance at each iteration.
            - "INFO": show only process logs to confirm things are working as expected.
            - "WARN": show unexpected behavior, potential problem, critical message, or error logs.
            - "MSG": show notices (default substitutions) and error logs.
            - "ERROR": only show log if error happened.
    """
    if verbose in _LEVELS:
        level = _LEVELS[verbose]
    else:
        logger.error("Unrecognized verbose level, options: ['DEBUG', 'TRACE', 'INFO','WARN', 'MSG', 'ERROR'], use 'ERROR' instead")
        level = logging.ERROR

    logger.setLevel(level)
    for handler in logger.handlers:
        if handler.level != level:
            handler.setLevel(level)
    logger.debug(f"Logging verbosity set to {level}.")


def set_package_verbose(verbose, package='trajflow'):
    """ Set verbosity of every logger created for modules of ``package``. """
    for name, lg in list(logging.Logger.manager.loggerDict.items()):
        if isinstance(lg, logging.Logger) and name.split('.')[0] == package:
            set_verbose(lg, verbose)


def progress_disabled(logger):
    """ Return `True` if progress bars should be hidden for the logger's current verbosity. """
    return logger.getEffectiveLevel() > logging.INFO
