import logging
from carexpert.config import settings

LOG_LEVEL = settings.log_level.upper()

logging.basicConfig(
	level=getattr(logging, LOG_LEVEL, logging.INFO),
	format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


def get_logger(name: str) -> logging.Logger:
	return logging.getLogger(name)
