#!/usr/bin/env python3
"""
Production entry point: create/seed the schema, then hand the process over
to gunicorn.

Usage:
    python scripts/start.py
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dotenv import load_dotenv

logger = logging.getLogger("fbms.start")


def resolve_port(raw: str | None) -> int:
    port = (raw or "").strip() or "8080"
    try:
        value = int(port)
    except ValueError:
        raise SystemExit(f"Invalid PORT value {port!r}. Must be integer 1-65535.")
    if not (1 <= value <= 65535):
        raise SystemExit(f"Invalid PORT value {port!r}. Must be integer 1-65535.")
    return value


def main() -> None:
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    port = resolve_port(os.environ.get("PORT"))

    from scripts.init_db import seed_only

    try:
        seed_only()
    except Exception:
        logger.exception("Seeding failed; not starting the server")
        sys.exit(1)

    logger.info("Starting gunicorn on 0.0.0.0:%s", port)
    # exec so gunicorn becomes PID 1 and receives signals directly
    os.execvp(
        "gunicorn",
        [
            "gunicorn",
            "app.wsgi:app",
            "--bind", f"0.0.0.0:{port}",
            "--workers", "2",
            "--timeout", "60",
            "--preload",
            "--access-logfile", "-",
            "--error-logfile", "-",
        ],
    )


if __name__ == "__main__":
    main()
