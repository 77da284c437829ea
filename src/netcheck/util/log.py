"""Root logger configuration for the API process.

Probe modules log through ``logging.getLogger(__name__)``; this module only
decides where those records go and how they look.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union


def setup_logging(log_file: Optional[Path] = None, level: Union[int, str] = logging.INFO):
    """Send records to stdout, and to log_file as well when one is configured.

    level may be a name such as "debug" (LOG_LEVEL); unknown names fall back
    to INFO. QUIC and asyncio chatter is held at WARNING.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    formatter = logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # library chatter, aioquic logs every packet at DEBUG
    logging.getLogger('asyncio').setLevel(logging.WARNING)
    logging.getLogger('aioquic').setLevel(logging.WARNING)
    logging.getLogger('quic').setLevel(logging.WARNING)
