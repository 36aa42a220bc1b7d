from __future__ import annotations

import logging


def setup_logging(*, environment: str, level: str | None = None) -> None:
    """Configure console logging for the service.

    Development defaults to DEBUG, everything else to INFO. An explicit
    ``level`` wins. Safe to call multiple times.
    """

    root = logging.getLogger()
    if root.handlers:
        return

    env = (environment or "development").lower().strip()
    resolved = logging.DEBUG if env == "development" else logging.INFO
    if level:
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            resolved = logging.INFO

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )
    console = logging.StreamHandler()
    console.setLevel(resolved)
    console.setFormatter(formatter)

    logging.basicConfig(level=resolved, handlers=[console])

    logging.getLogger("uvicorn.access").setLevel(resolved)
    # SQL echo is far too chatty below INFO.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
