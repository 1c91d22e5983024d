#!/usr/bin/env python3
"""
Container entry point: run the release step, then exec gunicorn.

Environment:
    PORT             listen port (default 8080)
    WEB_CONCURRENCY  gunicorn workers (default 2)
    SKIP_RELEASE     set to 1 to skip migrations/seed (e.g. extra replicas)
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

WSGI_APP = "app.skinserver.wsgi:app"


def listen_port(raw: str | None) -> int:
    raw = (raw or "").strip() or "8080"
    try:
        port = int(raw)
    except ValueError:
        raise SystemExit(f"PORT must be an integer, got {raw!r}.")
    if not 1 <= port <= 65535:
        raise SystemExit(f"PORT out of range: {port}.")
    return port


def gunicorn_argv(port: int, workers: str) -> list[str]:
    return [
        "gunicorn",
        WSGI_APP,
        "--bind", f"0.0.0.0:{port}",
        "--workers", workers,
        "--timeout", "60",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    port = listen_port(os.environ.get("PORT"))

    if (os.environ.get("SKIP_RELEASE") or "").strip() != "1":
        from scripts.release import run_release

        try:
            run_release()
        except Exception as e:
            print(f"Release failed: {e}", flush=True)
            sys.exit(1)

    argv = gunicorn_argv(port, (os.environ.get("WEB_CONCURRENCY") or "2").strip() or "2")
    print(f"Starting: {' '.join(argv)}", flush=True)
    # exec so gunicorn becomes PID 1 and receives signals directly
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
