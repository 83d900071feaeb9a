"""Run the local API with the tracking engine attached."""

from __future__ import annotations

import logging
import threading
import time
import webbrowser
from pathlib import Path
from typing import Optional

import uvicorn

from .config import TrackerSettings, load_settings
from .paths import get_config_path, get_db_path
from .webapp import create_app

logger = logging.getLogger(__name__)

_WILDCARD_HOSTS = {"0.0.0.0", "::", ""}


def run_dashboard(
    *,
    host: str = "127.0.0.1",
    port: int = 8765,
    db_path: Optional[Path] = None,
    config_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    open_browser: bool = True,
    log_level: str = "info",
) -> None:
    """Serve the API until interrupted; the engine starts and stops with the server.

    Settings default to the persisted config so that idle-timeout changes made
    through the API are read back on the next run.
    """
    config_path = config_path or get_config_path()
    app = create_app(
        db_path=db_path or get_db_path(),
        settings=settings or load_settings(config_path),
        config_path=config_path,
    )

    url = browser_url(host, port)
    logger.info("Serving the tracker API at %s", url)
    if open_browser:
        threading.Thread(
            target=_launch_browser_after_delay, args=(f"{url}/docs",), daemon=True
        ).start()

    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def browser_url(host: str, port: int) -> str:
    """URL a local browser should open for a server bound to ``host``."""
    if host in _WILDCARD_HOSTS:
        host = "127.0.0.1"
    elif ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return f"http://{host}:{port}"


def _launch_browser_after_delay(url: str) -> None:
    time.sleep(1.0)
    try:
        webbrowser.open(url)
    except Exception:
        logger.exception("Failed to launch browser for %s", url)
