import logging
import logging.config

from videomaker.log_buffer import buffer
from videomaker.settings import settings

FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_config(level: str = "INFO") -> dict:
    level = (level or "INFO").upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,  # keep uvicorn/fastapi loggers
        "formatters": {
            "default": {"format": FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        "loggers": {
            "uvicorn.error": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "uvicorn.access": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "videomaker": {"level": level, "handlers": ["console"], "propagate": False},
        },
    }


def setup_logging() -> None:
    logging.config.dictConfig(build_config(settings.LOG_LEVEL))
    # The ring buffer is a live object, so it's attached after dictConfig
    buffer.setFormatter(logging.Formatter(FORMAT))
    buffer.resize(settings.LOG_BUFFER_SIZE)
    app_log = logging.getLogger("videomaker")
    if buffer not in app_log.handlers:
        app_log.addHandler(buffer)
