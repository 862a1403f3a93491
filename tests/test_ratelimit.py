"""Tests for the cooldown and abuse gate."""

from datetime import datetime, timezone

import pytest

from seabot.db.models import User
from seabot.ratelimit import GateReason, RateGate, RateState

SENDER = "6281111@s.whatsapp.net"


@pytest.fixture
def gate():
    return RateGate(RateState(), cooldown_ms=2000, per_minute=20, per_hour=100, ban_duration_ms=3600000)


def _user(last_command_at=None):
    return User(id=1, primary_id=SENDER, last_command_at=last_command_at)


class TestAbuse:
    def test_under_limit_allowed(self, gate):
        for i in range(20):
            assert gate.check_abuse(SENDER, now=1000.0 + i).allowed

    def test_minute_limit_bans(self, gate):
        for i in range(20):
            gate.check_abuse(SENDER, now=1000.0 + i * 0.1)
        decision = gate.check_abuse(SENDER, now=1003.0)
        assert not decision.allowed
        assert decision.reason is GateReason.BANNED

    def test_banned_until_expiry(self, gate):
        for i in range(21):
            gate.check_abuse(SENDER, now=1000.0)
        assert gate.check_abuse(SENDER, now=1000.0 + 3599).reason is GateReason.BANNED
        assert gate.check_abuse(SENDER, now=1000.0 + 3601).allowed

    def test_hour_limit_bans(self, gate):
        # 100 requests spread so the minute window never exceeds 20
        for i in range(100):
            assert gate.check_abuse(SENDER, now=1000.0 + i * 30).allowed
        assert gate.check_abuse(SENDER, now=1000.0 + 100 * 30 - 1).reason is GateReason.BANNED

    def test_old_requests_slide_out(self, gate):
        for i in range(20):
            gate.check_abuse(SENDER, now=1000.0)
        assert gate.check_abuse(SENDER, now=1061.0).allowed

    def test_identifiers_independent(self, gate):
        for i in range(21):
            gate.check_abuse(SENDER, now=1000.0)
        assert gate.check_abuse("6282222@s.whatsapp.net", now=1000.0).allowed

    def test_unban(self, gate):
        for i in range(21):
            gate.check_abuse(SENDER, now=1000.0)
        gate.unban(SENDER)
        assert gate.check_abuse(SENDER, now=1001.0).allowed

    def test_reset_all(self, gate):
        for i in range(21):
            gate.check_abuse(SENDER, now=1000.0)
        gate.reset_all()
        assert gate.status(SENDER, now=1000.0)["banned"] is False

    def test_status(self, gate):
        for i in range(3):
            gate.check_abuse(SENDER, now=1000.0 + i)
        status = gate.status(SENDER, now=1002.0)
        assert status["requests_last_minute"] == 3
        assert status["requests_last_hour"] == 3
        assert status["banned"] is False


class TestCooldown:
    def test_first_command_allowed(self, gate):
        assert gate.check_cooldown(_user(), now=1000.0).allowed

    def test_within_cooldown_rejected(self, gate):
        last = datetime.fromtimestamp(1000.0, tz=timezone.utc)
        decision = gate.check_cooldown(_user(last), now=1001.0)
        assert decision.reason is GateReason.COOLDOWN
        assert decision.retry_after == pytest.approx(1.0)

    def test_after_cooldown_allowed(self, gate):
        last = datetime.fromtimestamp(1000.0, tz=timezone.utc)
        assert gate.check_cooldown(_user(last), now=1002.5).allowed

    def test_per_command_cooldown(self, gate):
        gate.mark_used(SENDER, "brat", now=1000.0)
        decision = gate.check_cooldown(_user(), "brat", command_cooldown=5, now=1003.0)
        assert decision.reason is GateReason.COOLDOWN
        assert gate.check_cooldown(_user(), "ping", command_cooldown=5, now=1003.0).allowed
        assert gate.check_cooldown(_user(), "brat", command_cooldown=5, now=1006.0).allowed
