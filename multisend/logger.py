import logging


PACKAGE_LOGGER = "multisend"


def _package_logger() -> logging.Logger:
    # Module loggers stay unconfigured and propagate up to this one
    logger = logging.getLogger(PACKAGE_LOGGER)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
            datefmt="%H:%M:%S",
        ))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    _package_logger()
    return logging.getLogger(name)


def set_level(level: str) -> None:
    """Set the level for all multisend logging."""
    _package_logger().setLevel(level)
