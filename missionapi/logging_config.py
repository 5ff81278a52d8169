import logging.config
import sys
from typing import Any, Dict


def build_logging_config(log_level: str = "INFO", sql_echo: bool = False) -> Dict[str, Any]:
    """
    dictConfig 설정 생성

    - missionapi.*: 서비스/라우터 로그 (원장 기록, 슬롯 점유, 지급 결정 등)
    - uvicorn.*: 서버 로그
    - sqlalchemy.engine: sql_echo 일 때만 INFO
    WARNING 이상은 위치 정보가 포함된 형식으로 stderr 에 한 번 더 출력된다.
    """
    level = log_level.upper()
    app_handlers = ["stdout", "stderr_warnings"]

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "line": {
                "format": "%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s",
            },
            "located": {
                "format": "%(asctime)s | %(levelname)-8s | %(name)s (%(filename)s:%(lineno)d)\n%(message)s",
            },
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "line",
                "stream": sys.stdout,
            },
            "stderr_warnings": {
                "class": "logging.StreamHandler",
                "formatter": "located",
                "stream": sys.stderr,
                "level": "WARNING",
            },
        },
        "root": {"handlers": app_handlers, "level": "WARNING"},
        "loggers": {
            "missionapi": {"handlers": app_handlers, "level": level, "propagate": False},
            "uvicorn.error": {"handlers": app_handlers, "level": level, "propagate": False},
            "uvicorn.access": {"handlers": ["stdout"], "level": level, "propagate": False},
            "sqlalchemy.engine": {
                "handlers": ["stdout"],
                "level": "INFO" if sql_echo else "WARNING",
                "propagate": False,
            },
        },
    }


def setup_logging(log_level: str = "INFO", sql_echo: bool = False) -> None:
    logging.config.dictConfig(build_logging_config(log_level, sql_echo))
