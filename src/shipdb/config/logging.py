"""Shared logging helpers for shipdb."""

from __future__ import annotations

import logging


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once with sensible defaults.

    The worker process calls this too, so its records carry the process name.
    Pass ``force=True`` to reconfigure during tests or specialised entry points.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(processName)s %(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
