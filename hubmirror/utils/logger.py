"""Logging setup for the hubmirror CLI.

Command results are printed to stdout as JSON, so console logging goes to
stderr. Other Python warnings are routed into the ``py.warnings`` logger;
TagResolutionWarning is filtered there because the image service already
logs every unresolved branch.
"""

import logging
import sys
import warnings
from typing import Optional

from ..errors import TagResolutionWarning

LOG_FORMAT = '%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s'

QUIET_LOGGERS = ('boto3', 'botocore', 's3transfer', 'urllib3')


def setup_logging(level: str = "INFO", log_file: Optional[str] = None):
    """Configure root logging for a CLI run."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    handlers = [stderr_handler]

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    warnings.simplefilter("ignore", TagResolutionWarning)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
