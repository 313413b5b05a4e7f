from __future__ import annotations

import logging
import os
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from uag.bootstrap import create_app

LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] [%(name)s] %(message)s"


def _configure_logging(level_name: str, log_dir: Path) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "dexiq.log"

    formatter = logging.Formatter(LOG_FORMAT)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # FileHandler subclasses StreamHandler; only a plain console handler counts here
    if not any(type(handler) is logging.StreamHandler for handler in root_logger.handlers):
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(formatter)
        root_logger.addHandler(console)

    resolved = str(log_path.resolve())
    if not any(
        isinstance(handler, TimedRotatingFileHandler) and getattr(handler, "baseFilename", "") == resolved
        for handler in root_logger.handlers
    ):
        daily = TimedRotatingFileHandler(
            filename=log_path,
            when="midnight",
            interval=1,
            backupCount=30,
            encoding="utf-8",
        )
        daily.suffix = "%Y-%m-%d"
        daily.setLevel(level)
        daily.setFormatter(formatter)
        root_logger.addHandler(daily)

    # access logs only at DEBUG
    if level > logging.DEBUG:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


_configure_logging(
    os.getenv("DEXIQ_LOG_LEVEL", "INFO"),
    Path(os.getenv("DEXIQ_LOG_DIR", "runtime/logs")),
)

app = create_app(
    settings_path=os.getenv("DEXIQ_SETTINGS_PATH", "runtime/config/settings.local.json"),
    credentials_path=os.getenv("DEXIQ_CREDENTIALS_PATH", "runtime/config/credentials.local.json"),
    db_path=os.getenv("DEXIQ_DB_PATH") or None,
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app:app",
        host=os.getenv("DEXIQ_HOST", "127.0.0.1"),
        port=int(os.getenv("DEXIQ_PORT", "8000")),
        reload=False,
    )
