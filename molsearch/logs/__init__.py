import logging
import os
import sys

verbose = os.environ.get("MOLSEARCH_VERBOSE_LOGGING", "false").lower() == "true"

logger = None
if not logger:
    logger = logging.getLogger("molsearch")
    logger.setLevel(logging.WARNING)
    sh = logging.StreamHandler()
    sh.setLevel(logging.DEBUG)
    if verbose:
        formatter = logging.Formatter(
            "%(name)s - %(levelname)s - %(pathname)s:%(lineno)d - %(message)s"
        )
        sh.setFormatter(formatter)
    else:
        formatter = logging.Formatter("%(name)s - %(levelname)s - %(message)s")
        sh.setFormatter(formatter)
    logger.addHandler(sh)


def setLogger(log: logging.Logger):
    """Replace the package logger.

    Args:
        log (logging.Logger): logger to use from now on
    """
    sys.modules[__name__].logger = log
