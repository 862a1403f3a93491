"""Profile lookup commands: Instagram, TikTok, Mobile Legends.

TikTok and Mobile Legends go through BetaBotz first and fall back to
BotCahX. A provider whose API key is not configured is skipped.
"""

import logging
import os
import re
import tempfile
from typing import Callable, Optional

import httpx

from .base import Command
from .providers import BETABOTZ_BASE, BOTCAHX_BASE, ProviderAttempt, http_client, try_providers
from ..formatting import format_number
from ..transport import OutboundMedia

logger = logging.getLogger("seabot.commands.stalk")

_TIKTOK_USERNAME = re.compile(r"^[a-zA-Z0-9._]+$")


def _yes_no(flag) -> str:
    return "Yes" if flag else "No"


class _LookupCommand(Command):
    category = "utility"
    cooldown_seconds = 5

    def __init__(
        self,
        betabotz_api_key: Optional[str] = None,
        botcahx_api_key: Optional[str] = None,
        http_factory: Callable[[], httpx.AsyncClient] = http_client,
        prefix: str = ".",
    ):
        self.betabotz_api_key = betabotz_api_key
        self.botcahx_api_key = botcahx_api_key
        self.http_factory = http_factory
        self.prefix = prefix


class StalkIgCommand(_LookupCommand):
    name = "stalkig"
    description = "Look up an Instagram profile"
    usage = "<username>"

    async def run(self, client, message, user, args, started_at):
        example = f"{self.prefix}stalkig not.funn_"
        if not args:
            await self.reply(
                client, message,
                f"❌ *Usage:* {self.prefix}stalkig <username>\n\n📋 *Example:* {example}\n\n"
                "💡 Enter the Instagram username without the @ symbol.",
            )
            return

        username = args[0].lstrip("@")
        attempt = ProviderAttempt(
            name="Instagram",
            url=f"https://www.instagram.com/{username}/",
            params={"__a": "1"},
            validate=lambda p: isinstance(p, dict) and "user" in (p.get("graphql") or {}),
        )
        async with self.http_factory() as http:
            result = await try_providers(http, [attempt])

        if not result.ok:
            if result.reason == "HTTP 404":
                text = f"❌ *Username \"{username}\" was not found on Instagram.*"
            else:
                text = "❌ *Username not found or the profile could not be fetched.*"
            await self.reply(client, message, f"{text}\n\nExample: {example}")
            return

        profile = result.payload["graphql"]["user"]
        followers = (profile.get("edge_followed_by") or {}).get("count", 0)
        following = (profile.get("edge_follow") or {}).get("count", 0)
        posts = (profile.get("edge_owner_to_timeline_media") or {}).get("count", 0)
        text = (
            f"*Name:* {profile.get('full_name') or '-'}\n"
            f"*Username:* @{profile.get('username', username)}\n"
            f"*Bio:* {profile.get('biography') or 'No bio'}\n"
            f"*Followers:* {format_number(followers)}\n"
            f"*Following:* {format_number(following)}\n"
            f"*Posts:* {format_number(posts)}\n"
            f"*Private:* {_yes_no(profile.get('is_private'))}\n"
            f"*Verified:* {_yes_no(profile.get('is_verified'))}\n"
            f"*Link:* https://www.instagram.com/{profile.get('username', username)}/"
        )
        await self.reply(client, message, text)


class StalkTtCommand(_LookupCommand):
    name = "stalktt"
    description = "Look up a TikTok profile"
    usage = "<username>"

    def attempts(self, username: str) -> list[ProviderAttempt]:
        attempts = []
        if self.betabotz_api_key:
            attempts.append(ProviderAttempt(
                name="BetaBotz",
                url=f"{BETABOTZ_BASE}/stalk/tt",
                params={"apikey": self.betabotz_api_key, "username": username},
                validate=lambda p: isinstance(p, dict) and p.get("code") == 200 and bool(p.get("result")),
            ))
        if self.botcahx_api_key:
            attempts.append(ProviderAttempt(
                name="BotCahX",
                url=f"{BOTCAHX_BASE}/stalk/tt",
                params={"apikey": self.botcahx_api_key, "username": username},
                validate=lambda p: isinstance(p, dict) and p.get("status") is True and bool(p.get("result")),
            ))
        return attempts

    async def run(self, client, message, user, args, started_at):
        example = f"{self.prefix}stalktt whttss"
        if not args:
            await self.reply(
                client, message,
                f"❌ *Usage:* {self.prefix}stalktt <username>\n\n📋 *Example:* {example}\n\n"
                "💡 Enter the TikTok username without the @ symbol.",
            )
            return

        username = args[0].replace("@", "")
        if not _TIKTOK_USERNAME.match(username):
            await self.reply(client, message, "❌ Invalid TikTok username! No spaces or special characters.")
            return

        await self.reply(client, message, "🔍 Looking up TikTok user...")
        async with self.http_factory() as http:
            result = await try_providers(http, self.attempts(username))
            if not result.ok:
                logger.warning(f"TikTok lookup for {username} failed: {result.reason}")
                await self.reply(
                    client, message,
                    "❌ TikTok user not found!\n\n"
                    "🔍 *Possible causes:*\n• Wrong username\n• Private or inactive account\n"
                    f"• API under maintenance\n\nExample: {example}",
                )
                return

            data = result.payload["result"]
            text = (
                "🎵 *TIKTOK PROFILE INFO*\n\n"
                f"👤 *Username:* {data.get('username') or username}\n"
                f"📝 *Description:* {data.get('description') or 'No description'}\n"
                f"❤️ *Likes:* {format_number(data.get('likes') or 0)}\n"
                f"👥 *Followers:* {format_number(data.get('followers') or 0)}\n"
                f"➕ *Following:* {format_number(data.get('following') or 0)}\n"
                f"📱 *Total Posts:* {format_number(data.get('totalPosts') or 0)}\n\n"
                f"🔗 *Profile:* https://tiktok.com/@{username}"
            )

            avatar = data.get("profile")
            if avatar and await self._send_avatar(client, message, http, avatar, text):
                return
        await self.reply(client, message, text)

    async def _send_avatar(self, client, message, http: httpx.AsyncClient, url: str, caption: str) -> bool:
        """Send the profile picture with the info as caption. False if it could not be fetched."""
        try:
            resp = await http.get(url)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.info(f"Could not fetch TikTok avatar: {e}")
            return False
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "avatar.jpg")
            with open(path, "wb") as f:
                f.write(resp.content)
            await client.send_message(message.chat_id, OutboundMedia(path=path, caption=caption))
        return True


def parse_ml_stalk_data(stalk_data: str) -> tuple[str, str]:
    """Pull nickname and country out of the ml-v2 free-text block."""
    nickname, country = "Unknown", "Unknown"
    for line in (stalk_data or "").splitlines():
        if "In-Game Nickname:" in line:
            nickname = line.split("In-Game Nickname:", 1)[1].strip() or nickname
        elif "Country:" in line:
            country = line.split("Country:", 1)[1].strip() or country
    return nickname, country


class StalkMlCommand(_LookupCommand):
    name = "stalkml"
    description = "Look up a Mobile Legends player"
    usage = "<id> <server>"

    def attempts(self, user_id: str, server_id: str) -> list[ProviderAttempt]:
        def ok(p) -> bool:
            return isinstance(p, dict) and bool((p.get("result") or {}).get("success"))

        attempts = []
        if self.betabotz_api_key:
            attempts.append(ProviderAttempt(
                name="BetaBotz",
                url=f"{BETABOTZ_BASE}/stalk/ml-v2",
                params={"apikey": self.betabotz_api_key, "id": user_id, "server": server_id},
                validate=ok,
            ))
        if self.botcahx_api_key:
            attempts.append(ProviderAttempt(
                name="BotCahX",
                url=f"{BOTCAHX_BASE}/stalk/ml-v2",
                params={"apikey": self.botcahx_api_key, "id": user_id, "server": server_id},
                validate=lambda p: ok(p) and p.get("status") is True,
            ))
        return attempts

    async def run(self, client, message, user, args, started_at):
        example = f"{self.prefix}stalkml 268046855 9408"
        if len(args) < 2:
            await self.reply(
                client, message,
                f"❌ *Usage:* {self.prefix}stalkml <id> <server>\n\n📌 *Example:* {example}\n\n"
                "💡 Enter your Mobile Legends User ID and Server ID.",
            )
            return

        user_id, server_id = args[0], args[1]
        if not (user_id.isdigit() and server_id.isdigit()):
            await self.reply(client, message, "❌ User ID and Server ID must be numbers!")
            return

        await self.reply(client, message, "🔍 Looking up Mobile Legends player...")
        async with self.http_factory() as http:
            result = await try_providers(http, self.attempts(user_id, server_id))

        if not result.ok:
            logger.warning(f"ML lookup for {user_id}/{server_id} failed: {result.reason}")
            await self.reply(
                client, message,
                "❌ Player not found!\n\n"
                "🔍 *Possible causes:*\n• Wrong User ID or Server ID\n• Player inactive\n"
                f"• API under maintenance\n\nExample: {example}",
            )
            return

        info = ((result.payload["result"].get("data") or {}).get("stalk_info")) or {}
        nickname, country = parse_ml_stalk_data(info.get("stalk_data", ""))
        text = (
            "🎮 *MOBILE LEGENDS PLAYER INFO*\n\n"
            f"👤 *Nickname:* {nickname}\n"
            f"🆔 *User ID:* {info.get('user_id', user_id)}\n"
            f"🌐 *Server ID:* {info.get('region', server_id)}\n"
            f"🌍 *Country:* {country}"
        )
        await self.reply(client, message, text)
