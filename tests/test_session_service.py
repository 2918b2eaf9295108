from __future__ import annotations

import pytest

from api.services.session_service import SessionService
from conftest import make_settings
from shared.models import session_duration_sec
from tracker.core.config import TrackerSettings


def test_session_token_round_trip():
    sessions = SessionService("key")
    sid = sessions.new_session_id()

    assert sessions.verify_token(sessions.create_session_token(sid)) == sid


def test_foreign_or_expired_tokens_are_rejected():
    mine = SessionService("key")
    other = SessionService("other-key")
    expired = SessionService("key", expire_days=-1)

    assert mine.verify_token(other.create_session_token("abc")) is None
    assert mine.verify_token(expired.create_session_token("abc")) is None
    assert mine.verify_token("not-a-jwt") is None


def test_empty_secret_is_refused():
    with pytest.raises(ValueError):
        SessionService("")


def test_session_duration_is_whole_seconds_and_never_negative():
    assert session_duration_sec(1000, 3999) == 2
    assert session_duration_sec(5000, 1000) == 0


def test_settings_validation():
    settings = make_settings(log_level="verbose", static_broadcaster_login=" Chan ")

    assert settings.log_level == "INFO"
    assert settings.static_broadcaster_login == "chan"
    assert settings.has_static_tenant is False
    with pytest.raises(ValueError):
        make_settings(database_url="mysql://nope")


def test_settings_read_dotenv_from_working_directory(tmp_path, monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("POLL_INTERVAL_SECONDS", raising=False)
    (tmp_path / ".env").write_text("LOG_LEVEL=debug\nPOLL_INTERVAL_SECONDS=30\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    settings = TrackerSettings(
        client_id="cid",
        client_secret="secret",
        database_url="postgresql://localhost/chatwatch_test",
        jwt_secret_key="key",
    )

    assert settings.log_level == "DEBUG"
    assert settings.poll_interval_seconds == 30.0
