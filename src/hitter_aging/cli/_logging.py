import logging
import sys

_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Chatty at INFO/DEBUG during fits and model persistence.
_LIBRARY_LOGGERS = ("statsmodels", "matplotlib", "numexpr", "joblib")


def configure_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Send log records to stderr for the ``aging`` CLI.

    ``verbose`` enables DEBUG everywhere, library loggers included.
    ``quiet`` shows warnings and errors only. Python warnings raised outside
    a model fit (pandas, numpy) are routed to the ``py.warnings`` logger.
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
    root.addHandler(handler)

    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET if verbose else logging.WARNING)
    logging.captureWarnings(True)
