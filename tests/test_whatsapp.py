"""Tests for the wacli bridge: inbound dedup and outbound sending."""

import sqlite3
from unittest.mock import AsyncMock

import pytest

from seabot.transport import OutboundMedia, SentMessage
from seabot.whatsapp import WhatsAppBridge

CHAT = "6281234567890@s.whatsapp.net"


def _row(rowid, text, chat=CHAT, sender=CHAT, name="Alice", from_me=0, msg_id=None):
    return {
        "rowid": rowid, "chat_jid": chat, "sender_jid": sender, "sender_name": name,
        "text": text, "from_me": from_me, "msg_id": msg_id,
    }


@pytest.fixture
def bridge(tmp_path):
    return WhatsAppBridge(wacli_path="wacli", db_path=str(tmp_path / "wacli.db"))


class TestProcessRows:
    def test_builds_messages(self, bridge):
        messages = bridge.process_rows([_row(1, " .ping ", msg_id="ABC")], now=1000)
        assert len(messages) == 1
        msg = messages[0]
        assert (msg.message_id, msg.chat_id, msg.sender_id, msg.text) == ("ABC", CHAT, CHAT, ".ping")
        assert msg.display_name == "Alice"
        assert not msg.from_me

    def test_group_sender(self, bridge):
        group = "120363000000@g.us"
        msg = bridge.process_rows([_row(1, ".menu", chat=group, sender="628111@s.whatsapp.net")], now=1000)[0]
        assert msg.is_group
        assert msg.sender_id == "628111@s.whatsapp.net"

    def test_rowid_seen_once(self, bridge):
        assert len(bridge.process_rows([_row(1, "a")], now=1000)) == 1
        assert bridge.process_rows([_row(1, "a")], now=1001) == []

    def test_same_text_from_distinct_messages_delivered(self, bridge):
        group = "120363000000@g.us"
        first = bridge.process_rows([_row(1, ".ping", chat=group, sender="628111@s.whatsapp.net", msg_id="A1")], now=1000)
        second = bridge.process_rows([_row(2, ".ping", chat=group, sender="628222@s.whatsapp.net", msg_id="B2")], now=1010)
        assert [m.message_id for m in first + second] == ["A1", "B2"]
        assert second[0].sender_id == "628222@s.whatsapp.net"

    def test_same_user_repeat_delivered(self, bridge):
        assert len(bridge.process_rows([_row(1, ".menu", msg_id="A1")], now=1000)) == 1
        assert len(bridge.process_rows([_row(2, ".menu", msg_id="A2")], now=1003)) == 1

    def test_msg_id_seen_once(self, bridge):
        assert len(bridge.process_rows([_row(1, ".ping", msg_id="A1")], now=1000)) == 1
        assert bridge.process_rows([_row(7, ".ping", msg_id="A1")], now=1001) == []

    def test_reply_text_from_user_not_treated_as_echo(self, bridge):
        bridge._echo_hashes[bridge._content_hash(CHAT, "ok")] = 1000
        assert len(bridge.process_rows([_row(1, "ok", msg_id="U1")], now=1001)) == 1

    def test_skips_empty(self, bridge):
        assert bridge.process_rows([_row(1, ""), _row(2, None), _row(3, "x", chat=None)], now=1000) == []

    def test_echo_suppressed_once(self, bridge):
        bridge._echo_hashes[bridge._content_hash(CHAT, "Pong! 5ms")] = 1000
        assert bridge.process_rows([_row(1, "Pong! 5ms", from_me=1)], now=1001) == []
        assert bridge._echo_hashes == {}

    def test_from_me_flag(self, bridge):
        msg = bridge.process_rows([_row(1, "typed on phone", from_me=1)], now=1000)[0]
        assert msg.from_me

    def test_tracks_last_rowid(self, bridge):
        bridge.process_rows([_row(5, "a"), _row(9, "b")], now=1000)
        assert bridge._last_rowid == 9


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_text(self, bridge):
        bridge._run_wacli = AsyncMock()
        sent = await bridge.send_message(CHAT, "hello")
        assert isinstance(sent, SentMessage)
        args = bridge._run_wacli.call_args[0][0]
        assert args == ["send", "text", "--to", CHAT, "--message", "hello"]
        assert bridge._content_hash(CHAT, "hello") in bridge._echo_hashes

    @pytest.mark.asyncio
    async def test_edit_sent_as_new_message(self, bridge):
        bridge._run_wacli = AsyncMock()
        first = await bridge.send_message(CHAT, "Calculating...")
        second = await bridge.send_message(CHAT, "Pong! 3ms", edit=first)
        assert second.message_id != first.message_id
        assert bridge._run_wacli.await_count == 2

    @pytest.mark.asyncio
    async def test_delete_is_skipped(self, bridge):
        bridge._run_wacli = AsyncMock()
        result = await bridge.send_message(CHAT, delete=SentMessage(CHAT, "wacli-1"))
        assert result is None
        bridge._run_wacli.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_media(self, bridge):
        bridge._run_wacli = AsyncMock()
        await bridge.send_message(CHAT, OutboundMedia(path="/tmp/a.jpg", caption="hi"))
        args = bridge._run_wacli.call_args[0][0]
        assert args == ["send", "file", "--to", CHAT, "--file", "/tmp/a.jpg", "--caption", "hi"]

    @pytest.mark.asyncio
    async def test_send_failure_propagates(self, bridge):
        bridge._run_wacli = AsyncMock(side_effect=RuntimeError("wacli send failed"))
        with pytest.raises(RuntimeError):
            await bridge.send_message(CHAT, "hello")


class TestListParticipants:
    GROUP = "120363000000@g.us"

    def _store(self, path, with_participants):
        conn = sqlite3.connect(path)
        conn.execute(
            "CREATE TABLE messages (chat_jid TEXT, sender_jid TEXT, sender_name TEXT, "
            "text TEXT, from_me INTEGER, msg_id TEXT)"
        )
        conn.executemany("INSERT INTO messages VALUES (?, ?, '', 'hi', ?, ?)", [
            (self.GROUP, "628111@s.whatsapp.net", 0, "a"),
            (self.GROUP, "628111@s.whatsapp.net", 0, "b"),
            (self.GROUP, "628222@s.whatsapp.net", 0, "c"),
            (self.GROUP, "628999@s.whatsapp.net", 1, "d"),
            ("other@g.us", "628333@s.whatsapp.net", 0, "e"),
        ])
        if with_participants:
            conn.execute("CREATE TABLE group_participants (group_jid TEXT, user_jid TEXT)")
            conn.executemany("INSERT INTO group_participants VALUES (?, ?)", [
                (self.GROUP, "628111@s.whatsapp.net"),
                (self.GROUP, "628444@s.whatsapp.net"),
            ])
        conn.commit()
        conn.close()

    @pytest.mark.asyncio
    async def test_reads_participant_table(self, bridge, tmp_path):
        self._store(str(tmp_path / "wacli.db"), with_participants=True)
        members = await bridge.list_participants(self.GROUP)
        assert sorted(members) == ["628111@s.whatsapp.net", "628444@s.whatsapp.net"]

    @pytest.mark.asyncio
    async def test_falls_back_to_senders(self, bridge, tmp_path):
        self._store(str(tmp_path / "wacli.db"), with_participants=False)
        members = await bridge.list_participants(self.GROUP)
        assert sorted(members) == ["628111@s.whatsapp.net", "628222@s.whatsapp.net"]
