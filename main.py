"""
SmartHealth session engine entry point.

Serves the USSD, voice and payment webhooks with uvicorn, or runs the
offline USSD simulator for development.

Usage:
    Server:       python main.py serve [--host 0.0.0.0] [--port 8000]
    Console mode: python main.py console
"""

import argparse
import logging

from smarthealth.config import settings

logger = logging.getLogger(__name__)


def _run_server(host: str, port: int) -> None:
    """Start the webhook server (background sweeps start with the app)."""
    import uvicorn

    logger.info("Serving %s on %s:%d", settings.app_name, host, port)
    uvicorn.run("smarthealth.api:app", host=host, port=port, log_level=settings.log_level.lower())


def _run_console_mode() -> None:
    """Start the offline console demo (no gateway required)."""
    from console_demo import ConsoleSession

    session = ConsoleSession()
    session.run()


def main() -> None:
    parser = argparse.ArgumentParser(description=settings.app_name)
    parser.add_argument("mode", nargs="?", choices=["serve", "console"], default="serve")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    if args.mode == "console":
        _run_console_mode()
    else:
        _run_server(args.host, args.port)


if __name__ == "__main__":
    main()
