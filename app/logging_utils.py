from __future__ import annotations

import logging

_LOGGER_INITIALISED = False


def configure_root_logger(level: int | str = logging.INFO) -> None:
    global _LOGGER_INITIALISED
    if _LOGGER_INITIALISED:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            '[%(asctime)s] [%(levelname)s] %(name)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        )
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(handler)
    _LOGGER_INITIALISED = True


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(name)
