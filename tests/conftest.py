"""
pytest fixtures: a router simulator on an ephemeral port and a client for it.
"""

import threading
from pathlib import Path
from typing import Generator

import pytest

from mikrolink.client.client import RouterClient
from mikrolink.sim.server import RouterSimulator

SIM_CONFIG = """
determinism: {seed: 1}
router_defaults:
  identity: test-router
  users: {admin: "", ops: "s3cret"}
  interfaces:
    - {name: ether1, type: ether}
    - {name: ether2, type: ether}
    - {name: wlan1, type: wlan}
default_fault_profile: clean
fault_profiles:
  clean:
    default: {}
  drop_resource:
    per_command:
      /system/resource/print:
        timeout: {p: 1.0, mode: drop}
  delay_resource:
    per_command:
      /system/resource/print:
        timeout: {p: 1.0, mode: delay, delay_s: [0.45, 0.45]}
  fragmented:
    default:
      fragment: {p: 1.0, chunk_size: 1}
  always_trap:
    default:
      trap: {p: 1.0, message: "simulated failure"}
"""


@pytest.fixture
def sim_config(tmp_path: Path) -> Path:
    p = tmp_path / "sim_config.yaml"
    p.write_text(SIM_CONFIG, encoding="utf-8")
    return p


@pytest.fixture
def sim(sim_config: Path) -> Generator[RouterSimulator, None, None]:
    server = RouterSimulator("127.0.0.1", 0, config_path=sim_config)
    t = threading.Thread(target=server.serve_forever, daemon=True)
    t.start()
    assert server.ready.wait(5.0)
    yield server
    server.stop()
    t.join(timeout=2.0)


@pytest.fixture
def client(sim: RouterSimulator) -> Generator[RouterClient, None, None]:
    c = RouterClient("127.0.0.1", sim.port, timeout_ms=2000)
    yield c
    c.close()
