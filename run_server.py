#!/usr/bin/env python3
"""
Run the marathon plan API

Usage:
    python run_server.py

Or with the Flask CLI:
    flask --app app run --port 8080
"""

import logging
import os

from app import create_app


def main():
    """Run the plan API with the built-in server"""
    port = int(os.environ.get("PORT", "8080"))
    host = os.environ.get("HOST", "0.0.0.0")
    debug = os.environ.get("FLASK_DEBUG", "false").lower() == "true"

    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger = logging.getLogger("run_server")
    logger.info("Starting marathon plan API on %s:%s (debug=%s)", host, port, debug)

    app = create_app()
    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    main()
