#!/usr/bin/env python3
"""
Main entry point for the live match tracker web application.

This script reads ``MATCHLIVE_*`` settings (and a local ``.env``), sets up
logging and launches the Flask-based web server.
"""
import argparse

from matchlive.ui.web_app import run_web_app
from matchlive.utils import DEFAULT_HOST, DEFAULT_PORT, LiveMatchConfig


def main() -> None:
    parser = argparse.ArgumentParser(description="Serve the live match API")
    parser.add_argument("--host", default=DEFAULT_HOST, help="Address to bind to")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Port to listen on")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    args = parser.parse_args()

    run_web_app(host=args.host, port=args.port, config=LiveMatchConfig.from_env(args.env_file))


if __name__ == "__main__":
    main()
