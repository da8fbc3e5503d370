"""Tests for Logfire initialization."""

import logging

import logfire

from betpot.config import Settings
from betpot.observability import initialize_logfire


def test_without_token_stays_local(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(logfire, "configure", lambda **kwargs: calls.append(kwargs))

    assert initialize_logfire(Settings(_env_file=None, logfire_token="")) is False
    assert calls[0]["send_to_logfire"] is False
    assert calls[0]["service_name"] == "betpot"


def test_with_token_bridges_logging(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(logfire, "configure", lambda **kwargs: calls.append(kwargs))
    root = logging.getLogger()
    before = list(root.handlers)

    try:
        assert initialize_logfire(Settings(_env_file=None, logfire_token="token")) is True
        assert calls[0]["token"] == "token"
        assert any(isinstance(h, logfire.LogfireLoggingHandler) for h in root.handlers)
    finally:
        root.handlers[:] = before


def test_configure_failure_is_not_fatal(monkeypatch) -> None:
    def broken(**kwargs):
        raise RuntimeError("offline")

    monkeypatch.setattr(logfire, "configure", broken)

    assert initialize_logfire(Settings(_env_file=None, logfire_token="token")) is False
