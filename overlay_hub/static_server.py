"""Optional companion HTTP server for the overlay page and its assets.

Serves bytes from one directory with extension-derived content types. It does
not interpret file contents and shares nothing with the relay.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from pathlib import Path

from aiohttp import web

from .constants import DEFAULT_HUB_HOST, DEFAULT_STATIC_PORT

INDEX_FILE = "index.html"


class StaticFileServer:
    def __init__(
        self,
        root: Path,
        host: str = DEFAULT_HUB_HOST,
        port: int = DEFAULT_STATIC_PORT,
    ) -> None:
        self.root = Path(root).expanduser().resolve()
        self.host = host
        self.port = port
        self._runner: web.AppRunner | None = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/{path:.*}", self._handle)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logging.info(f"🌐 Serving {self.root} on http://{self.host}:{self.port}")

    async def stop(self) -> None:
        runner, self._runner = self._runner, None
        if runner is not None:
            await runner.cleanup()
            logging.info("🛑 Static file server stopped")

    async def _handle(self, request: web.Request) -> web.Response:
        relative = request.match_info.get("path", "") or INDEX_FILE
        target = (self.root / relative).resolve()
        if not target.is_relative_to(self.root):
            raise web.HTTPForbidden()
        if target.is_dir():
            target = target / INDEX_FILE
        if not target.is_file():
            raise web.HTTPNotFound()
        mime, _ = mimetypes.guess_type(target.name)
        mime = mime or "application/octet-stream"
        body = await asyncio.to_thread(target.read_bytes)
        charset = "utf-8" if mime.startswith("text/") or mime.endswith("javascript") else None
        return web.Response(body=body, content_type=mime, charset=charset)
