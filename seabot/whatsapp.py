"""WhatsApp bridge via wacli.

Inbound: `wacli sync --follow` keeps the WhatsApp connection alive and writes
new messages into its local SQLite store; a poller picks up new rows every
two seconds and hands each one to the message handler as its own task.

Outbound: `wacli send text` / `wacli send file`. wacli holds an exclusive
lock on its store while syncing, so every send pauses the sync process.

Requires: wacli binary installed and authenticated (`wacli auth`).
"""

import asyncio
import hashlib
import logging
import os
import shutil
import sqlite3
import time
from typing import Awaitable, Callable, Optional

from .formatting import clean_text, split_message
from .transport import Content, InboundMessage, OutboundMedia, SentMessage

logger = logging.getLogger("seabot.whatsapp")

# Reliability: dedup / echo
_DEDUP_TTL = 120        # 2 minutes
_ECHO_TTL = 20          # 20 seconds
_DEDUP_MAX = 5000       # max cache entries before prune
_POLL_INTERVAL = 2.0

_SEND_TIMEOUT = 30
_SEND_FILE_TIMEOUT = 60

MessageCallback = Callable[[InboundMessage], Awaitable[None]]


def default_wacli_db() -> str:
    return os.path.expanduser("~/.wacli/wacli.db")


class WhatsAppBridge:
    """wacli subprocess bridge implementing the Transport protocol."""

    def __init__(self, wacli_path: str = "wacli", db_path: Optional[str] = None):
        self._wacli_path = wacli_path
        self._wacli_db = db_path
        self._on_message: Optional[MessageCallback] = None
        self._process: Optional[asyncio.subprocess.Process] = None
        self._monitor_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._inflight: set[asyncio.Task] = set()
        self._last_rowid: int = 0
        self._running = False
        self._send_lock = asyncio.Lock()
        self._sent_counter = 0
        # Dedup / echo state
        self._seen_rowids: set[int] = set()
        self._seen_msg_ids: dict[str, float] = {}    # msg_id -> timestamp
        self._echo_hashes: dict[str, float] = {}     # "chat_jid:md5" -> timestamp
        self._last_prune: float = 0.0

    @property
    def running(self) -> bool:
        return self._running

    # ── Binary lookup ───────────────────────────────────────────

    def _resolve_wacli(self) -> Optional[str]:
        """Find wacli: configured path, PATH, then Go binary dirs."""
        configured = os.path.expanduser(self._wacli_path)
        if os.path.isfile(configured) and os.access(configured, os.X_OK):
            return configured

        found = shutil.which(self._wacli_path) or shutil.which("wacli")
        if found:
            return found

        gopaths = {os.path.expanduser("~/go")}
        env_gopath = os.environ.get("GOPATH", "").strip()
        if env_gopath:
            gopaths.add(env_gopath)

        candidates = [os.path.expanduser("~/.local/bin/wacli")]
        candidates.extend(os.path.join(gp, "bin", "wacli") for gp in gopaths)
        for candidate in candidates:
            if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
                return candidate
        return None

    # ── Sync process ────────────────────────────────────────────

    async def _start_sync(self) -> bool:
        """Start the long-running `wacli sync --follow` process."""
        await self._stop_sync()

        try:
            self._process = await asyncio.create_subprocess_exec(
                self._wacli_path, "sync", "--follow",
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.error(f"Failed to start wacli sync: {e}")
            self._process = None
            return False

        self._monitor_task = asyncio.create_task(self._monitor_loop())
        return True

    async def _stop_sync(self):
        """Stop the sync process (if any)."""
        # Stop monitor first so it won't auto-restart on exit.
        if self._monitor_task and not self._monitor_task.done():
            self._monitor_task.cancel()
            try:
                await self._monitor_task
            except asyncio.CancelledError:
                pass
        self._monitor_task = None

        if self._process:
            try:
                self._process.terminate()
                await asyncio.wait_for(self._process.wait(), timeout=5)
            except (asyncio.TimeoutError, ProcessLookupError):
                try:
                    self._process.kill()
                except ProcessLookupError:
                    pass
            self._process = None

    async def _monitor_loop(self):
        """Watch wacli sync process, restart if it dies unexpectedly."""
        try:
            if self._process:
                await self._process.wait()
            if self._running:
                logger.warning("wacli process ended unexpectedly, restarting...")
                await self._restart_wacli()
        except asyncio.CancelledError:
            pass

    async def _restart_wacli(self):
        await asyncio.sleep(5)
        if not self._running:
            return
        logger.info("Restarting wacli sync...")
        if not await self._start_sync():
            logger.error("Failed to restart wacli sync")

    # ── Lifecycle ───────────────────────────────────────────────

    async def start(self, on_message: MessageCallback) -> bool:
        """Start syncing and polling. Returns False if wacli is unusable."""
        self._on_message = on_message

        resolved = self._resolve_wacli()
        if not resolved:
            logger.error("wacli binary not found. Install: go install github.com/steipete/wacli@latest")
            return False
        self._wacli_path = resolved

        self._wacli_db = self._wacli_db or default_wacli_db()
        if not os.path.isfile(self._wacli_db):
            logger.error(f"wacli database not found at {self._wacli_db}. Run `wacli auth` first.")
            return False

        self._running = True
        if not await self._start_sync():
            self._running = False
            return False

        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info(f"WhatsApp bridge started (wacli={self._wacli_path}).")
        return True

    async def stop(self):
        """Stop the WhatsApp bridge."""
        self._running = False

        if self._poll_task and not self._poll_task.done():
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
        self._poll_task = None

        if self._inflight:
            await asyncio.wait(self._inflight, timeout=10)

        await self._stop_sync()
        logger.info("WhatsApp bridge stopped.")

    # ── Inbound DB poller ───────────────────────────────────────

    def _read_max_rowid(self) -> int:
        conn = sqlite3.connect(self._wacli_db, timeout=5)
        try:
            return conn.execute("SELECT MAX(rowid) FROM messages").fetchone()[0] or 0
        finally:
            conn.close()

    def _read_new_rows(self) -> list[sqlite3.Row]:
        conn = sqlite3.connect(self._wacli_db, timeout=5)
        conn.row_factory = sqlite3.Row
        try:
            return conn.execute("""
                SELECT rowid, chat_jid, sender_jid, sender_name, text, from_me, msg_id
                FROM messages
                WHERE rowid > ?
                  AND text IS NOT NULL AND text != ''
                  AND chat_jid != 'status@broadcast'
                ORDER BY rowid ASC
            """, (self._last_rowid,)).fetchall()
        finally:
            conn.close()

    async def _poll_loop(self):
        """Poll the wacli SQLite store for new inbound messages."""
        # Seed to current max so only NEW messages are processed
        try:
            self._last_rowid = self._read_max_rowid()
            logger.info(f"WhatsApp poller started (last_rowid={self._last_rowid}, db={self._wacli_db})")
        except sqlite3.Error as e:
            logger.error(f"Failed to read wacli DB: {e}")
            return

        while self._running:
            try:
                await asyncio.sleep(_POLL_INTERVAL)
                if not self._running:
                    break
                rows = self._read_new_rows()
                if rows:
                    logger.debug(f"poll: {len(rows)} new row(s) after rowid {self._last_rowid}")
                for message in self.process_rows(rows):
                    self._dispatch(message)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in WhatsApp poll loop: {e}", exc_info=True)
                await asyncio.sleep(5)

    def process_rows(self, rows, now: Optional[float] = None) -> list[InboundMessage]:
        """Turn store rows into messages, dropping repeated rows or message ids and our own echoes."""
        now = time.time() if now is None else now
        if now - self._last_prune > 60:
            self._prune_caches(now)

        messages = []
        for row in rows:
            rowid = row["rowid"]
            self._last_rowid = max(self._last_rowid, rowid)

            if rowid in self._seen_rowids:
                continue
            self._seen_rowids.add(rowid)

            text = (row["text"] or "").strip()
            chat_jid = row["chat_jid"] or ""
            if not text or not chat_jid:
                continue

            if row["from_me"]:
                h = self._content_hash(chat_jid, text)
                if h in self._echo_hashes and (now - self._echo_hashes[h]) < _ECHO_TTL:
                    del self._echo_hashes[h]
                    logger.debug(f"echo suppressed: {text[:60]}")
                    continue

            # wacli can store one message under several rowids; identical
            # text from distinct messages is never merged
            msg_id = row["msg_id"] or f"row-{rowid}"
            if msg_id in self._seen_msg_ids:
                continue
            self._seen_msg_ids[msg_id] = now

            messages.append(InboundMessage(
                message_id=msg_id,
                chat_id=chat_jid,
                sender_id=row["sender_jid"] or chat_jid,
                display_name=row["sender_name"] or "",
                text=text,
                from_me=bool(row["from_me"]),
            ))
        return messages

    async def list_participants(self, chat_id: str) -> list[str]:
        """Members of a group, read from the wacli store.

        Uses the synced participant table when wacli has one, otherwise
        everyone who has written in the chat.
        """
        conn = sqlite3.connect(f"file:{self._wacli_db or default_wacli_db()}?mode=ro", uri=True, timeout=5)
        try:
            try:
                rows = conn.execute(
                    "SELECT user_jid FROM group_participants WHERE group_jid = ?", (chat_id,),
                ).fetchall()
            except sqlite3.OperationalError:
                rows = []
            if not rows:
                rows = conn.execute("""
                    SELECT DISTINCT sender_jid FROM messages
                    WHERE chat_jid = ? AND from_me = 0
                      AND sender_jid IS NOT NULL AND sender_jid != ''
                """, (chat_id,)).fetchall()
        finally:
            conn.close()
        return [r[0] for r in rows]

    def _dispatch(self, message: InboundMessage):
        """Hand a message to the handler without blocking the poller."""
        if self._on_message is None:
            return
        task = asyncio.create_task(self._on_message(message))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    def _content_hash(self, chat_jid: str, text: str) -> str:
        """Return a compact content hash for echo detection."""
        return f"{chat_jid}:{hashlib.md5(text.encode()).hexdigest()[:12]}"

    def _prune_caches(self, now: Optional[float] = None):
        """Remove expired entries from dedup/echo caches."""
        now = time.time() if now is None else now
        self._seen_msg_ids = {k: v for k, v in self._seen_msg_ids.items() if (now - v) < _DEDUP_TTL}
        self._echo_hashes = {k: v for k, v in self._echo_hashes.items() if (now - v) < _ECHO_TTL}
        if len(self._seen_rowids) > _DEDUP_MAX:
            sorted_ids = sorted(self._seen_rowids)
            self._seen_rowids = set(sorted_ids[-_DEDUP_MAX:])
        self._last_prune = now

    # ── Outbound ────────────────────────────────────────────────

    async def send_message(
        self,
        chat_id: str,
        content: Optional[Content] = None,
        *,
        edit: Optional[SentMessage] = None,
        delete: Optional[SentMessage] = None,
        mentions: Optional[list[str]] = None,
    ) -> Optional[SentMessage]:
        """Send text or a file. wacli cannot edit or delete messages: an
        edit goes out as a new message, a delete is skipped and mentions
        are not attached."""
        if mentions:
            logger.debug(f"wacli cannot attach mentions; sending to {chat_id} without {len(mentions)} mention(s)")
        if delete is not None:
            logger.debug(f"wacli has no delete verb; leaving message {delete.message_id} in {chat_id}")
            return None
        if content is None:
            return None

        async with self._send_lock:
            was_syncing = self._process is not None
            if was_syncing:
                await self._stop_sync()
            try:
                if isinstance(content, OutboundMedia):
                    await self._wacli_send_file(chat_id, content.path, content.caption)
                else:
                    text = clean_text(content)
                    if not text:
                        return None
                    for chunk in split_message(text):
                        await self._wacli_send_text(chat_id, chunk)
                        await asyncio.sleep(0.3)
            finally:
                if self._running and was_syncing:
                    if not await self._start_sync():
                        logger.error("Failed to restart wacli sync after sending message")

        self._sent_counter += 1
        return SentMessage(chat_id=chat_id, message_id=f"wacli-{self._sent_counter}")

    async def _wacli_send_text(self, jid: str, text: str):
        """Send a single text chunk. Caller must hold _send_lock."""
        await self._run_wacli(["send", "text", "--to", jid, "--message", text], _SEND_TIMEOUT)
        self._echo_hashes[self._content_hash(jid, text)] = time.time()

    async def _wacli_send_file(self, jid: str, file_path: str, caption: str = ""):
        """Send a file. Caller must hold _send_lock."""
        args = ["send", "file", "--to", jid, "--file", file_path]
        if caption:
            args.extend(["--caption", caption])
        await self._run_wacli(args, _SEND_FILE_TIMEOUT)
        logger.info(f"sent file to {jid}: {os.path.basename(file_path)}")

    async def _run_wacli(self, args: list[str], timeout: float):
        proc = await asyncio.create_subprocess_exec(
            self._wacli_path, *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            raise
        if proc.returncode != 0:
            err = stderr.decode("utf-8", errors="replace") if stderr else ""
            raise RuntimeError(f"wacli {' '.join(args[:2])} failed (rc={proc.returncode}): {err[:200]}")
