from __future__ import annotations

import logging
import socket
import threading
from concurrent.futures import Future
from typing import Any, List, Mapping, Optional, Sequence, Union

from mikrolink.client.dispatcher import CommandDispatcher, DispatcherState
from mikrolink.client.errors import ConnectionClosedError
from mikrolink.client.request import Request, load_request
from mikrolink.config import Settings
from mikrolink.wire.reply import ParsedResult, parse_response
from mikrolink.wire.sentences import Sentence

logger = logging.getLogger(__name__)

DEFAULT_HOST = "192.168.88.1"
DEFAULT_PORT = 8728
DEFAULT_TIMEOUT_MS = 10_000
RECV_SIZE = 4096


class RouterClient:
    """RouterOS API client over one persistent TCP connection.

    The connection is opened in the constructor and read by a daemon thread.
    Commands are serialized by a :class:`CommandDispatcher`: one in flight,
    the rest queued in submission order.

    Usage::

        with RouterClient("192.168.88.1") as router:
            router.login("admin", "secret")
            res = router.call(path="/interface/print", query={"type": "ether"})
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        *,
        max_pending: int = 0,
        connect_timeout_s: float = 5.0,
    ) -> None:
        self.host = host
        self.port = port
        self.timeout_ms = timeout_ms

        self._sock = socket.create_connection((host, port), timeout=connect_timeout_s)
        self._sock.settimeout(None)
        self._closing = threading.Event()
        self.dispatcher = CommandDispatcher(
            self._sock.sendall,
            timeout_s=timeout_ms / 1000.0,
            max_pending=max_pending,
            on_close=self._abort,
        )
        self._reader = threading.Thread(
            target=self._read_loop,
            name=f"mikrolink-reader-{host}:{port}",
            daemon=True,
        )
        self._reader.start()
        logger.info("Connected to %s:%d", host, port)

    @classmethod
    def from_settings(cls, s: Settings) -> "RouterClient":
        return cls(s.host, s.port, s.timeout_ms, max_pending=s.max_pending)

    @property
    def closed(self) -> bool:
        return self._closing.is_set() or self.dispatcher.state is DispatcherState.CLOSED

    def _read_loop(self) -> None:
        exc: Optional[BaseException] = None
        try:
            while True:
                chunk = self._sock.recv(RECV_SIZE)
                if not chunk:
                    break
                self.dispatcher.feed(chunk)
        except OSError as e:
            if not self._closing.is_set():
                exc = e
        finally:
            if exc is not None:
                logger.warning("Connection to %s:%d lost: %s", self.host, self.port, exc)
            elif not self._closing.is_set():
                logger.warning("Connection to %s:%d closed by peer", self.host, self.port)
            self.dispatcher.connection_lost(exc)

    def _abort(self) -> None:
        # Unblocks a stuck sendall and ends the reader loop
        logger.warning("Dropping connection to %s:%d", self.host, self.port)
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass

    # ---- commands ----
    def send_command(self, words: Sequence[str]) -> "Future[List[Sentence]]":
        """Submit raw words; resolves with the reply sentences."""
        return self.dispatcher.submit(words)

    def send(
        self,
        request: Union[Request, Mapping[str, Any], None] = None,
        **fields: Any,
    ) -> "Future[ParsedResult]":
        """Send ``{path, query?, body?}`` and resolve with a ParsedResult.

        A router trap resolves with ``success=False``; the future is only
        rejected for timeouts, connection loss and malformed replies.
        """
        if request is None:
            req = load_request(fields)
        elif isinstance(request, Request):
            req = request
        else:
            req = load_request({**request, **fields})

        inner = self.send_command(req.words())
        out: "Future[ParsedResult]" = Future()
        # No explicit cancel: the caller's future settles only through the dispatcher
        out.set_running_or_notify_cancel()

        def _done(f: "Future[List[Sentence]]") -> None:
            err = f.exception()
            if err is not None:
                out.set_exception(err)
                return
            out.set_result(parse_response(f.result()))

        inner.add_done_callback(_done)
        return out

    def call(
        self,
        request: Union[Request, Mapping[str, Any], None] = None,
        *,
        timeout_s: Optional[float] = None,
        **fields: Any,
    ) -> ParsedResult:
        """Blocking form of :meth:`send`."""
        return self.send(request, **fields).result(timeout=timeout_s)

    def login(self, name: str, password: str) -> ParsedResult:
        return self.call(path="/login", body={"name": name, "password": password})

    # ---- lifecycle ----
    def close(self) -> None:
        if self._closing.is_set():
            return
        self._closing.set()
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Peer may already have gone away
            pass
        self._sock.close()
        self.dispatcher.connection_lost(ConnectionClosedError("Client closed"))
        if self._reader is not threading.current_thread():
            self._reader.join(timeout=1.0)
        logger.info("Disconnected from %s:%d", self.host, self.port)

    def __enter__(self) -> "RouterClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
