#!/usr/bin/env python3
"""
WebSocket relay: connect to any ws:// or wss:// endpoint through this server,
optionally routing the upstream side through Burp (or any HTTP(S) proxy)
Usage: python3 ws_proxy.py [--port 9000] [--burp] [--burp-proxy http://127.0.0.1:8080]
Example: ws://localhost:9000/?target=wss://relay.damus.io

Every option can also come from the environment: PORT, USE_BURP, BURP_PROXY,
BURP_CA_FILE, OPEN_TIMEOUT, MAX_MESSAGE_SIZE, LOG_LEVEL.
"""

import argparse
import asyncio
import contextlib
import logging
import signal
import sys

from pydantic import ValidationError

from wsrelay.bridge import create_server
from wsrelay.config import Settings, load_settings

logger = logging.getLogger("wsrelay")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bidirectional WebSocket relay")
    parser.add_argument("--host", help="Listen address (HOST, default 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Listen port (PORT, default 9000)")
    parser.add_argument(
        "--burp",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Tunnel upstream connections through the proxy (USE_BURP)",
    )
    parser.add_argument("--burp-proxy", help="Proxy address (BURP_PROXY, default http://127.0.0.1:8080)")
    parser.add_argument("--log-level", help="Logging level (LOG_LEVEL, default INFO)")
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


def log_banner(settings: Settings) -> None:
    logger.info("===================================")
    logger.info(" WebSocket Proxy Server Running")
    logger.info(" Listening on port: %s", settings.PORT)
    logger.info(" Burp enabled: %s", settings.USE_BURP)
    if settings.USE_BURP:
        logger.info(" Burp proxy: %s", settings.BURP_PROXY)
    logger.info("===================================")


async def serve_until_stopped(settings: Settings) -> None:
    loop = asyncio.get_running_loop()
    stop = loop.create_future()

    def _request_stop() -> None:
        if not stop.done():
            stop.set_result(None)

    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, _request_stop)

    server = await create_server(settings)
    log_banner(settings)

    await stop
    logger.info("Shutting down...")
    # In-flight sessions are left to finish on their own.
    server.close(close_connections=False)
    await server.wait_closed()


async def main(argv=None):
    args = parse_args(argv)
    try:
        settings = load_settings(
            HOST=args.host,
            PORT=args.port,
            USE_BURP=args.burp,
            BURP_PROXY=args.burp_proxy,
            LOG_LEVEL=args.log_level,
        )
    except ValidationError as exc:
        sys.exit(f"Invalid configuration:\n{exc}")

    configure_logging(settings.LOG_LEVEL)
    await serve_until_stopped(settings)
    logger.info("Proxy stopped")


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        # Only reached where the loop cannot install signal handlers (Windows).
        logger.info("Proxy stopped")


if __name__ == "__main__":
    run()
