import json

import pytest

from mikrolink.cli import run_send
from mikrolink.cli.run_send import _parse_pairs
from mikrolink.client.errors import ConnectionClosedError
from mikrolink.config import load_settings


def test_defaults(monkeypatch):
    for name in ("MIKROLINK_HOST", "MIKROLINK_PORT", "MIKROLINK_TIMEOUT_MS", "MIKROLINK_MAX_PENDING", "MIKROLINK_USER"):
        monkeypatch.delenv(name, raising=False)
    s = load_settings()
    assert (s.host, s.port, s.timeout_ms, s.max_pending) == ("192.168.88.1", 8728, 10000, 0)
    assert s.user is None


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("MIKROLINK_HOST", "10.0.0.1")
    monkeypatch.setenv("MIKROLINK_PORT", "8729")
    monkeypatch.setenv("MIKROLINK_TIMEOUT_MS", "2500")
    monkeypatch.setenv("MIKROLINK_MAX_PENDING", "16")
    s = load_settings()
    assert (s.host, s.port, s.timeout_ms, s.max_pending) == ("10.0.0.1", 8729, 2500, 16)


def test_cli_pairs_fan_out_repeated_keys():
    assert _parse_pairs(["a=1", "id=1", "id=2", "expr=x=y"]) == {"a": "1", "id": ["1", "2"], "expr": "x=y"}


def test_cli_pairs_reject_bare_key():
    with pytest.raises(SystemExit):
        _parse_pairs(["novalue"])


def test_cli_send_reports_error_code(monkeypatch, capsys):
    def refuse(s):
        raise ConnectionClosedError("Connection is closed")

    monkeypatch.setattr(run_send.RouterClient, "from_settings", staticmethod(refuse))
    with pytest.raises(SystemExit) as ei:
        run_send.main(["/system/identity/print"])

    assert ei.value.code == 2
    out = json.loads(capsys.readouterr().out)
    assert out == {"success": False, "error": "E_CONN_CLOSED", "message": "Connection is closed"}
