"""Fun commands: brat sticker maker."""

import base64
import logging
import os
import tempfile
from typing import Callable, Optional

import httpx

from .base import Command
from .providers import BETABOTZ_BASE, http_client
from ..transport import OutboundMedia

logger = logging.getLogger("seabot.commands.fun")


class BratCommand(Command):
    name = "brat"
    description = "Turn text into a brat-style sticker"
    category = "fun"
    usage = "<text>"
    cooldown_seconds = 5

    def __init__(
        self,
        api_key: Optional[str],
        http_factory: Callable[[], httpx.AsyncClient] = http_client,
        prefix: str = ".",
    ):
        self.api_key = api_key
        self.http_factory = http_factory
        self.prefix = prefix

    async def run(self, client, message, user, args, started_at):
        if not args:
            await self.reply(
                client, message,
                f"❌ Please provide text!\n\n{self.usage_hint(self.prefix)}\nExample: {self.prefix}brat hello world",
            )
            return
        if not self.api_key:
            await self.reply(client, message, "❌ Sticker maker is not configured (missing BetaBotz API key).")
            return

        text = " ".join(args)
        loading = await self.reply(client, message, "⏳ Creating brat sticker...")

        async with self.http_factory() as http:
            image = await self._fetch_image(http, text)

        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "brat.webp")
            with open(path, "wb") as f:
                f.write(image)
            await client.send_message(message.chat_id, OutboundMedia(path=path, kind="sticker"))

        if loading is not None:
            await client.send_message(message.chat_id, delete=loading)

    async def _fetch_image(self, http: httpx.AsyncClient, text: str) -> bytes:
        """Fetch the sticker image. The API answers with raw image bytes,
        a JSON ``result`` URL, or a JSON base64 data URI."""
        resp = await http.get(f"{BETABOTZ_BASE}/maker/brat", params={"text": text, "apikey": self.api_key})
        resp.raise_for_status()

        if resp.headers.get("content-type", "").startswith("image/"):
            return resp.content

        data = resp.json()
        if data.get("status") is False or not isinstance(data.get("result"), str):
            raise RuntimeError(f"Brat API error: {data.get('message', 'unexpected response')}")

        result = data["result"]
        if result.startswith("http"):
            image_resp = await http.get(result)
            image_resp.raise_for_status()
            return image_resp.content

        if result.startswith("data:"):
            result = result.split(",", 1)[-1]
        return base64.b64decode(result)
