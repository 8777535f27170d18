#!/usr/bin/env python3
"""
Production startup: release phase, then gunicorn in place of this process.

Environment:
  PORT              listen port (default 8080)
  WEB_CONCURRENCY   gunicorn workers (default 2)
  GUNICORN_TIMEOUT  worker timeout in seconds (default 60)

Usage:
    python scripts/start.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

WSGI_TARGET = "app.wsgi:app"


def validate_port(raw: str | None) -> str:
    port = (raw or "").strip()
    if not port:
        print("WARNING: PORT not set, using default 8080", flush=True)
        port = "8080"
    if not port.isdigit() or not (1 <= int(port) <= 65535):
        raise ValueError(f"Invalid PORT value '{port}'. Must be integer 1-65535.")
    return port


def _positive_int(raw: str | None, name: str, default: int) -> int:
    raw = (raw or "").strip()
    if not raw:
        return default
    if not raw.isdigit() or int(raw) < 1:
        raise ValueError(f"Invalid {name} value '{raw}'. Must be a positive integer.")
    return int(raw)


def gunicorn_argv(port: str, env: dict[str, str] | None = None) -> list[str]:
    env = os.environ if env is None else env
    workers = _positive_int(env.get("WEB_CONCURRENCY"), "WEB_CONCURRENCY", 2)
    timeout = _positive_int(env.get("GUNICORN_TIMEOUT"), "GUNICORN_TIMEOUT", 60)
    return [
        "gunicorn",
        WSGI_TARGET,
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(workers),
        "--timeout", str(timeout),
        # engine is disposed in each worker after fork
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    try:
        port = validate_port(os.environ.get("PORT"))
        argv = gunicorn_argv(port)
    except ValueError as e:
        print(f"ERROR: {e}", flush=True)
        sys.exit(1)

    print("=== Running release phase ===", flush=True)
    from scripts.release import run_release

    try:
        run_release()
    except Exception as e:
        print(f"Release failed: {e}", flush=True)
        sys.exit(1)

    print(f"=== Starting gunicorn on 0.0.0.0:{port} ===", flush=True)
    # exec so gunicorn becomes PID 1 and receives signals directly
    os.execvp("gunicorn", argv)


if __name__ == "__main__":
    main()
