"""
Logging setup for ChapterHub.

Configures the root logger once per process. Modules log through
logging.getLogger(__name__); request handlers may use current_app.logger,
which propagates to the same handlers.
"""
import logging
import os
import sys

_configured = False

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'


def setup_logging(level: str = None) -> None:
    """Configure root logging (idempotent)."""
    global _configured
    if _configured:
        return

    level_name = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.setLevel(log_level)
    root.addHandler(handler)

    # SQLAlchemy echoes every statement at INFO
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logging.getLogger('apscheduler').setLevel(logging.WARNING)

    _configured = True

