import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: int = logging.INFO) -> logging.Logger:
    """Attach a single stream handler to the ``cardzones`` logger tree."""
    logger = logging.getLogger("cardzones")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        logger.addHandler(handler)
        # avoid duplicate lines through the root logger
        logger.propagate = False
    logger.setLevel(level)
    return logger
