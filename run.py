#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
ClubSponsor launcher.

- Local dev:        ./run.py --env development
- Production-ish:   ENV=production TRUST_PROXY=1 ./run.py --env production --no-reload
- Gunicorn export:  gunicorn "wsgi:app"
"""

from __future__ import annotations

import argparse
import logging
import os

from dotenv import load_dotenv


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run the ClubSponsor Flask app.")
    p.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))
    p.add_argument("--port", type=int, default=int(os.getenv("PORT", "5000")))
    p.add_argument("--env", choices=["development", "testing", "production"], help="Runtime environment")
    p.add_argument("--config", help="Explicit dotted config path or name (development/testing/production)")
    p.add_argument("--debug", action=argparse.BooleanOptionalAction, default=None,
                   help="Force debug on/off (default: on in development).")
    p.add_argument("--no-reload", action="store_true", help="Disable Werkzeug reloader.")
    return p.parse_args()


def main() -> None:
    load_dotenv(override=False)
    args = parse_args()

    env = args.env or os.getenv("ENV") or "development"
    # Standardize env names everywhere
    os.environ["ENV"] = env
    os.environ["APP_ENV"] = env

    debug = args.debug if args.debug is not None else env == "development"
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO)

    from clubsponsor import create_app
    from clubsponsor.extensions import socketio

    flask_app = create_app(args.config or env)
    logging.info("Socket.IO async mode: %s", getattr(socketio, "async_mode", "?"))
    socketio.run(
        flask_app,
        host=args.host,
        port=args.port,
        debug=debug,
        use_reloader=debug and not args.no_reload,
        allow_unsafe_werkzeug=debug,
    )


if __name__ == "__main__":
    main()
