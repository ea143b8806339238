from __future__ import annotations

import logging


def setup_logging(*, environment: str, level: str | None = None) -> None:
    """Attach one console handler to the root logger.

    Defaults to DEBUG outside production and INFO in production; ``level``
    overrides either. Does nothing once the root logger has handlers.
    """

    root = logging.getLogger()
    if root.handlers:
        return

    resolved = logging.INFO if (environment or "").strip().lower() == "production" else logging.DEBUG
    if level:
        named = logging.getLevelName(level.upper())
        resolved = named if isinstance(named, int) else logging.INFO

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    root.addHandler(handler)
    root.setLevel(resolved)

    # SQL echo is far too chatty at DEBUG.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
