"""JSON logging for the web and worker processes."""

import logging
from typing import Union

from pythonjsonlogger import jsonlogger

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'
RENAMED = {'levelname': 'level', 'asctime': 'timestamp'}


def setup_logger(level: Union[int, str] = logging.INFO) -> None:
    """Send records from every module to stderr as JSON, once per process."""
    root = logging.getLogger()
    root.setLevel(level)
    if any(isinstance(h.formatter, jsonlogger.JsonFormatter)
           for h in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(jsonlogger.JsonFormatter(LOG_FORMAT,
                                                  rename_fields=RENAMED))
    root.addHandler(handler)
