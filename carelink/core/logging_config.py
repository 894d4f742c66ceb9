import logging.config

from carelink.core.config import get_settings


def setup_logging(level: str | None = None) -> None:
    """
    Configure stdlib logging once at startup.

    Module code only ever does `logging.getLogger(__name__)`.
    """
    level = (level or get_settings().log_level).upper()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {"handlers": ["console"], "level": level},
            "loggers": {
                # audit trail of auth events
                "carelink.audit": {"level": "INFO"},
                "sqlalchemy.engine": {"level": "WARNING"},
            },
        }
    )
