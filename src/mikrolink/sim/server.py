from __future__ import annotations

import importlib.resources as importlib_resources
import logging
import os
import random
import socket
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from mikrolink.client.errors import ProtocolError
from mikrolink.sim.fault_injection import FaultInjector
from mikrolink.sim.router_model import RouterModel, Session, done, trap
from mikrolink.wire.sentences import Sentence, SentenceDecoder, encode_sentence

logger = logging.getLogger(__name__)


def load_sim_config(path: Optional[Path] = None) -> Dict:
    """Load simulator config with robust fallbacks.

    Order:
    1) Explicit path arg (if exists)
    2) MIKROLINK_SIM_CONFIG env var (if set + exists)
    3) CWD-relative sim/config.yaml (dev workflow)
    4) Packaged default (mikrolink/resources/sim_config.yaml)
    """
    if path is not None and path.exists():
        return yaml.safe_load(path.read_text(encoding="utf-8")) or {}

    env_path = os.getenv("MIKROLINK_SIM_CONFIG", "").strip()
    if env_path:
        p = Path(env_path)
        if p.exists():
            return yaml.safe_load(p.read_text(encoding="utf-8")) or {}

    dev = Path("sim/config.yaml")
    if dev.exists():
        return yaml.safe_load(dev.read_text(encoding="utf-8")) or {}

    txt = importlib_resources.files("mikrolink").joinpath("resources/sim_config.yaml").read_text(encoding="utf-8")
    return yaml.safe_load(txt) or {}


class RouterSimulator:
    """Multi-client TCP RouterOS API simulator (thread-per-connection)."""

    def __init__(
        self,
        host: str,
        port: int,
        *,
        config_path: Optional[Path] = None,
        fault_profile: Optional[str] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.ready = threading.Event()
        self._stop = threading.Event()
        self._sock: Optional[socket.socket] = None

        cfg = load_sim_config(config_path)
        self._cfg = cfg

        seed = int(((cfg.get("determinism") or {}).get("seed")) or 0) or None
        self._rng = random.Random(seed)

        prof_name = fault_profile or os.getenv("MIKROLINK_FAULT_PROFILE", str(cfg.get("default_fault_profile", "clean")))
        self.faults = FaultInjector(self._rng, self._profile(prof_name))
        self.profile_name = prof_name

        self.router = RouterModel(self._rng, defaults=(cfg.get("router_defaults") or {}))
        self._router_lock = threading.Lock()

    def _profile(self, name: str) -> Dict:
        profiles = self._cfg.get("fault_profiles") or {}
        return profiles.get(name) or profiles.get("clean") or {}

    def set_profile(self, name: str) -> None:
        self.faults.profile = self._profile(name)
        self.profile_name = name
        logger.info("fault profile -> %s", name)

    def stop(self) -> None:
        self._stop.set()
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError:
                pass

    def _send(self, conn: socket.socket, replies: List[Sentence], chunk_size: int = 0) -> None:
        data = b"".join(encode_sentence(s) for s in replies)
        if chunk_size <= 0:
            conn.sendall(data)
            return
        for i in range(0, len(data), chunk_size):
            conn.sendall(data[i : i + chunk_size])
            time.sleep(0.001)

    def _dispatch(self, session: Session, words: Sentence) -> Tuple[Optional[List[Sentence]], int]:
        """Return ``(replies, chunk_size)``; ``replies`` is None to stay silent."""
        cmd = words[0] if words else ""
        decision = self.faults.evaluate(cmd)

        if decision.action == "TRAP":
            return [trap(decision.message), done()], 0
        if decision.action == "DROP":
            time.sleep(decision.delay_s)
            return None, 0
        if decision.action == "DELAY":
            time.sleep(decision.delay_s)

        with self._router_lock:
            replies = self.router.handle(session, words)
        return replies, decision.chunk_size

    def _handle(self, conn: socket.socket, addr: Tuple[str, int]) -> None:
        session = Session()
        decoder = SentenceDecoder()
        with conn:
            while not self._stop.is_set():
                try:
                    chunk = conn.recv(4096)
                except OSError:
                    return
                if not chunk:
                    return
                try:
                    sentences = decoder.feed(chunk)
                except ProtocolError as e:
                    logger.warning("[%s:%d] bad request bytes: %s", addr[0], addr[1], e)
                    return
                for words in sentences:
                    logger.debug("[%s:%d] <- %s", addr[0], addr[1], words)
                    replies, chunk_size = self._dispatch(session, words)
                    if replies is None:
                        continue
                    try:
                        self._send(conn, replies, chunk_size)
                    except OSError:
                        return

    def serve_forever(self) -> None:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            self._sock = s
            s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            s.bind((self.host, self.port))
            s.listen()
            s.settimeout(0.5)
            self.port = s.getsockname()[1]
            logger.info("router simulator listening on %s:%d (profile=%s)", self.host, self.port, self.profile_name)
            self.ready.set()

            while not self._stop.is_set():
                try:
                    conn, addr = s.accept()
                except socket.timeout:
                    continue
                except OSError:
                    break
                conn.settimeout(None)
                threading.Thread(target=self._handle, args=(conn, addr), daemon=True).start()

            logger.info("router simulator shutdown complete")
