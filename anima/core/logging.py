"""
Root logging setup. Everything goes to stdout so Gunicorn / the platform
captures it alongside access logs.
"""
import logging
import sys

from anima.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
        stream=sys.stdout,
    )
