"""Per-category log levels for the API process and the offline sync client.

Both entry points (the FastAPI lifespan and ``build_offline_client_service``)
call ``setup_logging``; the stderr handler is installed only once, levels
are re-applied on every call so a later Settings object wins.
"""

import logging
import sys

from client_tracker.config import Settings, get_settings

_FORMAT = "%(asctime)s %(levelname)-8s %(name)s — %(message)s"

# Settings field → logger names (a name also covers its child loggers)
_CATEGORY_MAP: dict[str, tuple[str, ...]] = {
    "log_level_sql": ("sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite"),
    "log_level_http": ("httpx", "httpcore"),
    "log_level_uvicorn": ("uvicorn", "uvicorn.access", "uvicorn.error"),
    "log_level_sync": (
        "SyncCoordinator",
        "ChangeNotifier",
        "client_tracker.application.services.sync_coordinator",
        "client_tracker.application.services.offline_queue",
        "client_tracker.application.services.local_mirror",
        "client_tracker.application.services.change_notifier",
        "client_tracker.application.services.offline_client_service",
        "client_tracker.infrastructure.api",
        "client_tracker.infrastructure.connectivity",
        "client_tracker.infrastructure.storage",
    ),
}

_handler: logging.Handler | None = None


def setup_logging(settings: Settings | None = None) -> None:
    """Apply the log levels configured in ``settings``."""
    global _handler
    settings = settings or get_settings()

    root = logging.getLogger()
    root.setLevel(_parse_level(settings.log_level))
    # uvicorn installs its own handlers; scripts and tests get ours
    if _handler is None and not root.handlers:
        _handler = logging.StreamHandler(sys.stderr)
        _handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
        root.addHandler(_handler)

    levels = {}
    for field_name, logger_names in _CATEGORY_MAP.items():
        levels[field_name] = getattr(settings, field_name, "INFO")
        level = _parse_level(levels[field_name])
        for name in logger_names:
            logging.getLogger(name).setLevel(level)

    logging.getLogger(__name__).debug(
        "Logging configured — root=%s %s",
        settings.log_level,
        " ".join(f"{k.removeprefix('log_level_')}={v}" for k, v in levels.items()),
    )


def _parse_level(raw: str) -> int:
    """Level name → logging constant; unknown names fall back to INFO."""
    level = logging.getLevelName(raw.strip().upper())
    return level if isinstance(level, int) else logging.INFO
