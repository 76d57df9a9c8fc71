# backend/histquiz/serverless.py
"""
Per-request host for POST /api/generate-question.

`handler` has the shape the Vercel Python runtime expects from a module under
api/: a BaseHTTPRequestHandler subclass. Nothing is shared between
invocations; the secret is read and the upstream client built on every
request, and the body is read straight from the request stream.
"""

import asyncio
import logging
import os
from http.server import BaseHTTPRequestHandler

from histquiz.core.config import load_settings
from histquiz.core.endpoint import EndpointResponse, GenerationEndpoint
from histquiz.core.gemini_qg import init_client

logger = logging.getLogger("quiz.serverless")


class handler(BaseHTTPRequestHandler):
    def _dispatch(self) -> None:
        self._send(asyncio.run(self._handle()))

    do_GET = do_POST = do_PUT = do_PATCH = do_DELETE = do_OPTIONS = do_HEAD = _dispatch

    async def _handle(self) -> EndpointResponse:
        # The client belongs to this request's event loop; close it before the loop ends.
        init = init_client(load_settings(os.environ))
        try:
            return await GenerationEndpoint(init).handle(self.command, self._read_body)
        finally:
            await init.aclose()

    async def _read_body(self) -> bytes:
        length = int(self.headers.get("Content-Length") or 0)
        return self.rfile.read(length) if length > 0 else b""

    def _send(self, result: EndpointResponse) -> None:
        self.send_response(result.status)
        for name, value in result.headers.items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(result.body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(result.body)

    def log_message(self, format, *args):
        logger.info("%s - %s", self.address_string(), format % args)
