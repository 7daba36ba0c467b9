import logging
import socket
from logging.config import dictConfig

from pythonjsonlogger.json import JsonFormatter

from category_hierarchy.core.config import settings


class HostnameJsonFormatter(JsonFormatter):
    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["hostname"] = socket.gethostname()


def build_log_config(level: str = "INFO") -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": HostnameJsonFormatter,
                "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "category_hierarchy": {
                "handlers": ["console"],
                "level": level,
                "propagate": False
            },
            "": {  # Root logger
                "handlers": ["console"],
                "level": "WARNING",
            }
        }
    }


def setup_logging(level: str = None):
    """로깅 설정 적용 (애플리케이션 시작 시 한 번 호출)"""
    dictConfig(build_log_config(level or settings.LOG_LEVEL))
    return logging.getLogger("category_hierarchy")
