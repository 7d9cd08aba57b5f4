"""Qudurat JSON-lines server entry point.

Usage: python -m qudurat.server

Reads JSON requests from stdin (one per line), writes JSON responses to stdout.
All logging goes to stderr to keep the protocol clean.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

from qudurat.config.settings import Settings, configure_logging

from .handler import ServerHandler
from .protocol import Notification, Request, Response

logger = logging.getLogger("qudurat.server")


async def serve(settings: Settings | None = None) -> None:
    settings = settings or Settings.load()
    configure_logging(settings.get_log_level())
    loop = asyncio.get_running_loop()

    def write_line(text: str) -> None:
        sys.stdout.write(text)
        sys.stdout.flush()

    def write_notification(notification: Notification) -> None:
        write_line(notification.to_json_line())

    handler = ServerHandler(settings=settings, write_notification=write_notification)
    logger.info("qudurat-server: ready")

    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)

    while True:
        line = await reader.readline()
        if not line:
            break  # stdin closed

        line_str = line.decode("utf-8", errors="replace").strip()
        if not line_str:
            continue

        try:
            msg = json.loads(line_str)
        except json.JSONDecodeError as e:
            write_line(Response(id=0, error=f"Invalid JSON: {e}").to_json_line())
            continue

        req_id = msg.get("id", 0) if isinstance(msg, dict) else 0
        try:
            request = Request.from_dict(msg)
            result = await handler.dispatch(request.to_dict())
            resp = Response(id=req_id, result=result)
        except Exception as e:
            logger.error("Request %s failed: %s", req_id, e)
            resp = Response(id=req_id, error=str(e))

        write_line(resp.to_json_line())


def main() -> None:
    asyncio.run(serve())


if __name__ == "__main__":
    main()
