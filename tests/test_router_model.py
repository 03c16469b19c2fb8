import random
from pathlib import Path

from mikrolink.sim.router_model import RouterModel, Session, matches, parse_queries
from mikrolink.sim.server import load_sim_config
from mikrolink.wire.reply import parse_response


def _model() -> RouterModel:
    return RouterModel(random.Random(0), defaults={"users": {"admin": "pw"}})


def _logged_in(model: RouterModel) -> Session:
    s = Session()
    assert parse_response(model.handle(s, ["/login", "=name=admin", "=password=pw"])).success
    return s


def test_unknown_command_traps():
    res = parse_response(_model().handle(Session(), ["/no/such/thing"]))
    assert res.message == "no such command prefix"


def test_login_required():
    res = parse_response(_model().handle(Session(), ["/system/resource/print"]))
    assert res.message == "not logged in"


def test_every_reply_ends_with_done():
    m = _model()
    s = _logged_in(m)
    for cmd in m.commands:
        assert m.handle(s, [cmd])[-1][0] == "!done"


def test_resource_print_fields():
    m = _model()
    rows = parse_response(m.handle(_logged_in(m), ["/system/resource/print"])).data
    assert {"uptime", "version", "cpu-load", "free-memory", "total-memory"} <= set(rows[0])


def test_query_semantics():
    q = parse_queries(["?type=ether", "?name=ether1", "?name=ether2", "=ignored=1"])
    assert q == {"type": ["ether"], "name": ["ether1", "ether2"]}
    assert matches({"type": "ether", "name": "ether2"}, q)
    assert not matches({"type": "bridge", "name": "ether1"}, q)
    assert matches({"name": "x"}, {})


def test_add_rejects_unknown_interface():
    m = _model()
    res = parse_response(m.handle(_logged_in(m), ["/ip/address/add", "=address=1.2.3.4/32", "=interface=nope"]))
    assert not res.success


def test_packaged_config_loads(monkeypatch, tmp_path: Path):
    monkeypatch.delenv("MIKROLINK_SIM_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    cfg = load_sim_config()
    assert cfg["default_fault_profile"] == "clean"
    assert "fragmented" in cfg["fault_profiles"]


def test_env_config_wins_over_packaged(monkeypatch, tmp_path: Path):
    p = tmp_path / "custom.yaml"
    p.write_text("router_defaults: {identity: from-env}\n", encoding="utf-8")
    monkeypatch.setenv("MIKROLINK_SIM_CONFIG", str(p))
    assert load_sim_config()["router_defaults"]["identity"] == "from-env"
