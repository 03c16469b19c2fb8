from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Tuple

import random

from mikrolink.wire.reply import DONE, RE, TRAP, attributes
from mikrolink.wire.sentences import Sentence

E_NOT_LOGGED_IN = "not logged in"
E_BAD_LOGIN = "invalid user name or password"
E_NO_SUCH_COMMAND = "no such command prefix"
E_NO_SUCH_ITEM = "no such item"


@dataclass
class Session:
    """Per-connection state."""

    user: str = ""

    @property
    def logged_in(self) -> bool:
        return bool(self.user)


@dataclass
class RouterState:
    identity: str
    version: str
    board_name: str
    total_memory: int
    users: Dict[str, str]
    interfaces: List[Dict[str, str]]
    addresses: List[Dict[str, str]] = field(default_factory=list)
    next_id: int = 1
    boot_s: float = 0.0


def done(**attrs: str) -> Sentence:
    return [DONE] + [f"={k}={v}" for k, v in attrs.items()]


def trap(message: str) -> Sentence:
    return [TRAP, f"=message={message}"]


def row(item: Dict[str, str]) -> Sentence:
    return [RE] + [f"={k}={v}" for k, v in item.items()]


def parse_queries(words: List[str]) -> Dict[str, List[str]]:
    """``?key=value`` words -> {key: [values]}, keeping repeated keys."""
    q: Dict[str, List[str]] = {}
    for w in words:
        if not w.startswith("?"):
            continue
        key, _, value = w[1:].partition("=")
        q.setdefault(key, []).append(value)
    return q


def matches(item: Dict[str, str], queries: Dict[str, List[str]]) -> bool:
    # Same key: any value matches. Different keys: all must match.
    return all(item.get(k) in values for k, values in queries.items())


class RouterModel:
    """In-memory router answering a small set of API commands.

    Deterministic mode is achieved by injecting a seeded RNG.
    """

    def __init__(self, rng: random.Random, defaults: Dict) -> None:
        self._rng = rng
        interfaces = defaults.get("interfaces") or [
            {"name": "ether1", "type": "ether"},
            {"name": "ether2", "type": "ether"},
            {"name": "bridge", "type": "bridge"},
        ]
        self.state = RouterState(
            identity=str(defaults.get("identity", "MikroTik")),
            version=str(defaults.get("version", "7.15.3 (stable)")),
            board_name=str(defaults.get("board_name", "hEX")),
            total_memory=int(defaults.get("total_memory", 268435456)),
            users={str(k): str(v) for k, v in (defaults.get("users") or {"admin": ""}).items()},
            interfaces=[
                {".id": f"*{i + 1}", "running": "true", "disabled": "false", **{k: str(v) for k, v in it.items()}}
                for i, it in enumerate(interfaces)
            ],
            boot_s=time.time(),
        )
        self._handlers: Dict[str, Callable[[Session, List[str]], List[Sentence]]] = {
            "/login": self.login,
            "/system/identity/print": self.identity_print,
            "/system/resource/print": self.resource_print,
            "/interface/print": self.interface_print,
            "/ip/address/print": self.address_print,
            "/ip/address/add": self.address_add,
            "/ip/address/remove": self.address_remove,
        }

    @property
    def commands(self) -> Tuple[str, ...]:
        return tuple(self._handlers)

    def handle(self, session: Session, words: Sentence) -> List[Sentence]:
        """Answer one command sentence with its reply sentences."""
        if not words:
            return [trap(E_NO_SUCH_COMMAND), done()]
        cmd = words[0]
        handler = self._handlers.get(cmd)
        if handler is None:
            return [trap(E_NO_SUCH_COMMAND), done()]
        if cmd != "/login" and not session.logged_in:
            return [trap(E_NOT_LOGGED_IN), done()]
        return handler(session, words[1:])

    # ---- commands ----
    def login(self, session: Session, args: List[str]) -> List[Sentence]:
        a = attributes(args)
        name = a.get("name", "")
        if name not in self.state.users or self.state.users[name] != a.get("password", ""):
            return [trap(E_BAD_LOGIN), done()]
        session.user = name
        return [done()]

    def identity_print(self, session: Session, args: List[str]) -> List[Sentence]:
        return [row({"name": self.state.identity}), done()]

    def resource_print(self, session: Session, args: List[str]) -> List[Sentence]:
        s = self.state
        uptime = int(time.time() - s.boot_s)
        free = int(s.total_memory * (0.6 + 0.2 * self._rng.random()))
        return [
            row(
                {
                    "uptime": f"{uptime}s",
                    "version": s.version,
                    "board-name": s.board_name,
                    "cpu-load": str(self._rng.randint(0, 25)),
                    "free-memory": str(free),
                    "total-memory": str(s.total_memory),
                }
            ),
            done(),
        ]

    def _print(self, items: List[Dict[str, str]], args: List[str]) -> List[Sentence]:
        q = parse_queries(args)
        return [row(it) for it in items if matches(it, q)] + [done()]

    def interface_print(self, session: Session, args: List[str]) -> List[Sentence]:
        return self._print(self.state.interfaces, args)

    def address_print(self, session: Session, args: List[str]) -> List[Sentence]:
        return self._print(self.state.addresses, args)

    def address_add(self, session: Session, args: List[str]) -> List[Sentence]:
        a = attributes(args)
        if not a.get("address") or not a.get("interface"):
            return [trap("missing value for address or interface"), done()]
        if a["interface"] not in {it["name"] for it in self.state.interfaces}:
            return [trap("input does not match any value of interface"), done()]
        item_id = f"*{self.state.next_id:X}"
        self.state.next_id += 1
        self.state.addresses.append(
            {".id": item_id, "address": a["address"], "interface": a["interface"], "disabled": "false"}
        )
        return [done(ret=item_id)]

    def address_remove(self, session: Session, args: List[str]) -> List[Sentence]:
        item_id = attributes(args).get(".id", "")
        for i, it in enumerate(self.state.addresses):
            if it[".id"] == item_id:
                del self.state.addresses[i]
                return [done()]
        return [trap(E_NO_SUCH_ITEM), done()]
