"""
배치 작업 실행 스크립트 (HTTP cron 엔드포인트 없이 직접 실행할 때)

Usage:
    python scripts/run_cron.py expire-participations
    python scripts/run_cron.py close-campaigns
"""

import argparse
import logging
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from missionapi.config import settings
from missionapi.containers import Container
from missionapi.logging_config import setup_logging

logger = logging.getLogger("missionapi.cron")

JOBS = ("expire-participations", "close-campaigns")


def run_job(container: Container, job: str):
    """컨테이너에서 서비스를 조립해 배치 작업 1회 실행"""
    if job == "expire-participations":
        service = container.services.mission_service()
        try:
            return service.expire_participations()
        finally:
            service.db.close()
    if job == "close-campaigns":
        service = container.services.campaign_service()
        try:
            return service.close_ended_campaigns()
        finally:
            service.db.close()
    raise ValueError(f"Unknown job: {job}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run a scheduled job once")
    parser.add_argument("job", choices=JOBS)
    args = parser.parse_args(argv)

    setup_logging(settings.LOG_LEVEL)
    result = run_job(Container(), args.job)
    logger.info(f"Job {args.job} finished: {result.model_dump()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
