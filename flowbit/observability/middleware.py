"""
Request logging middleware.

Raw ASGI so that live stream responses are never buffered.
"""

import logging
import time

from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

QUIET_PATHS = frozenset({"/health"})


def is_stream_request(method: str, path: str) -> bool:
    return method == "GET" and path.rstrip("/").endswith("/stream")


class LoggingMiddleware:
    """
    Logs method, path, status and elapsed time of every HTTP request.

    Live streams are passed through untouched; only their start and end
    (with total connection time) are logged.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope["method"]
        path = scope["path"]
        start_time = time.perf_counter()

        if is_stream_request(method, path):
            logger.info(f"{method} {path} - stream opened")
            try:
                await self.app(scope, receive, send)
            finally:
                logger.info(f"{method} {path} - stream closed after {time.perf_counter() - start_time:.1f}s")
            return

        log = logger.debug if path in QUIET_PATHS else logger.info

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                log(
                    f"{method} {path} completed in "
                    f"{time.perf_counter() - start_time:.3f}s with status {message['status']}"
                )
            await send(message)

        await self.app(scope, receive, send_wrapper)
