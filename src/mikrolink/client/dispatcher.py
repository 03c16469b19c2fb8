"""Single-connection command dispatcher.

One command is on the wire at a time. Further commands wait in a FIFO queue
and are written only after the one in flight has been answered.

State machine::

    IDLE --drain--> BUSY --!done--> IDLE
                     |
                     +--!trap--> AWAIT_DONE --!done / timer--> IDLE
                     |
                     +--timeout--> DISCARDING --!done / !fatal--> IDLE
                                       |
                                       +--!trap--> AWAIT_DONE
                                       +--timer--> CLOSED

    any --connection_lost / bad reply bytes--> CLOSED

A trapped command settles its future as soon as the ``!trap`` sentence is
decoded, but keeps the connection until the router's trailing ``!done`` so
that sentence is not taken for the next command's reply.

A timed-out command fails its future at once. Its late reply is still owed,
so the connection stays reserved and the reply is thrown away when it comes.
If it never comes within ``late_reply_s`` the stream can no longer be
trusted and the dispatcher closes. Undecodable reply bytes close it too,
since word boundaries are lost.

All state changes happen under ``self._lock``; futures are settled and bytes
are written after the lock is released.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Deque, List, Optional, Sequence

from mikrolink.client.errors import (
    CommandTimeoutError,
    ConnectionClosedError,
    ProtocolError,
    QueueFullError,
)
from mikrolink.wire.reply import DONE, FATAL, is_terminal, reply_marker
from mikrolink.wire.sentences import Sentence, SentenceDecoder, encode_sentence

logger = logging.getLogger(__name__)

Writer = Callable[[bytes], None]
TimerFactory = Callable[..., threading.Timer]


class DispatcherState(str, Enum):
    IDLE = "IDLE"
    BUSY = "BUSY"
    AWAIT_DONE = "AWAIT_DONE"
    DISCARDING = "DISCARDING"
    CLOSED = "CLOSED"


@dataclass
class PendingCommand:
    words: List[str]
    data: bytes
    future: "Future[List[Sentence]]"
    sentences: List[Sentence] = field(default_factory=list)
    timer: Optional[threading.Timer] = None

    @property
    def name(self) -> str:
        return self.words[0]


def _ends_reply(sentences: List[Sentence]) -> bool:
    return any(reply_marker(s) in (DONE, FATAL) for s in sentences)


def _any_terminal(sentences: List[Sentence]) -> bool:
    return any(is_terminal(s) for s in sentences)


class CommandDispatcher:
    """Serializes commands over one connection and collects their replies.

    Args:
        write: Sends raw bytes to the connection. ``OSError`` closes the dispatcher.
        timeout_s: Per-command completion window.
        max_pending: Maximum queued (not yet written) commands; 0 means unbounded.
        late_reply_s: How long a timed-out command's reply is waited for before
            the connection is given up. Defaults to twice ``timeout_s``.
        on_close: Called once when the dispatcher closes itself, so the owner
            can tear down the transport.
        timer_factory: ``threading.Timer``-compatible constructor.
    """

    def __init__(
        self,
        write: Writer,
        *,
        timeout_s: float,
        max_pending: int = 0,
        late_reply_s: Optional[float] = None,
        on_close: Optional[Callable[[], None]] = None,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        if timeout_s <= 0:
            raise ValueError(f"timeout_s must be > 0, got {timeout_s}")
        if max_pending < 0:
            raise ValueError(f"max_pending must be >= 0, got {max_pending}")
        self._write = write
        self.timeout_s = float(timeout_s)
        self.max_pending = int(max_pending)
        self.late_reply_s = float(late_reply_s) if late_reply_s is not None else 2 * self.timeout_s
        if self.late_reply_s <= 0:
            raise ValueError(f"late_reply_s must be > 0, got {late_reply_s}")
        self._on_close = on_close
        self._timer_factory = timer_factory

        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._queue: Deque[PendingCommand] = deque()
        self._state = DispatcherState.IDLE
        self._current: Optional[PendingCommand] = None
        self._decoder: Optional[SentenceDecoder] = None

    @property
    def state(self) -> DispatcherState:
        return self._state

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def in_flight(self) -> bool:
        return self._current is not None

    # ---- public API ----
    def submit(self, words: Sequence[str]) -> "Future[List[Sentence]]":
        """Queue a command; the future resolves with its reply sentences."""
        if not words:
            raise ValueError("a command needs at least one word")
        bad = [w for w in words if not isinstance(w, str)]
        if bad:
            raise TypeError(f"command words must be str, got {bad!r}")

        future: "Future[List[Sentence]]" = Future()
        entry = PendingCommand(words=list(words), data=encode_sentence(words), future=future)
        with self._lock:
            if self._state is DispatcherState.CLOSED:
                raise ConnectionClosedError("Connection is closed")
            if self.max_pending and len(self._queue) >= self.max_pending:
                raise QueueFullError(f"{len(self._queue)} commands already pending (max_pending={self.max_pending})")
            self._queue.append(entry)

        self.drain()
        return future

    def drain(self) -> None:
        """Write the next queued command if the connection is free."""
        with self._lock:
            entry = self._start_next_locked()
        if entry is None:
            return

        try:
            with self._write_lock:
                self._write(entry.data)
        except OSError as e:
            logger.warning("write failed for %s: %s", entry.name, e)
            self._close(e)
        else:
            logger.debug("sent %s", entry.words)

    def feed(self, chunk: bytes) -> None:
        """Handle bytes read from the connection."""
        error: Optional[ProtocolError] = None
        settle = False
        with self._lock:
            entry = self._current
            if entry is None or self._decoder is None:
                if chunk:
                    logger.warning("discarding %d bytes received with no command in flight", len(chunk))
                return

            try:
                sentences = self._decoder.feed(chunk)
            except ProtocolError as e:
                error = e
            else:
                for s in sentences:
                    logger.debug("received %s", s)

                if self._state is DispatcherState.BUSY:
                    entry.sentences.extend(sentences)
                    if not _any_terminal(sentences):
                        return
                    if _ends_reply(entry.sentences):
                        self._finish_locked(entry)
                    else:
                        self._state = DispatcherState.AWAIT_DONE
                    settle = True
                elif _ends_reply(sentences):
                    if self._state is DispatcherState.DISCARDING:
                        logger.info("discarded late reply to %s", entry.name)
                    self._finish_locked(entry)
                elif self._state is DispatcherState.DISCARDING and _any_terminal(sentences):
                    self._state = DispatcherState.AWAIT_DONE
                    return
                else:
                    return

        if error is not None:
            logger.warning("bad reply to %s: %s", entry.name, error)
            _settle(entry.future, error=error)
            self._close(error)
            return
        if settle:
            _settle(entry.future, result=entry.sentences)
        self.drain()

    def connection_lost(self, exc: Optional[BaseException] = None) -> None:
        """Fail the command in flight and everything queued behind it."""
        self._fail_all(exc)

    # ---- transitions (lock held) ----
    def _start_next_locked(self) -> Optional[PendingCommand]:
        if self._state is not DispatcherState.IDLE:
            return None
        while self._queue:
            entry = self._queue.popleft()
            # Cancelled by the caller while still queued
            if not entry.future.set_running_or_notify_cancel():
                continue
            self._current = entry
            self._decoder = SentenceDecoder()
            self._state = DispatcherState.BUSY
            self._arm_locked(entry, self.timeout_s)
            return entry
        return None

    def _arm_locked(self, entry: PendingCommand, interval: float) -> None:
        if entry.timer is not None:
            entry.timer.cancel()
        entry.timer = self._timer_factory(interval, self._expire, args=(entry,))
        entry.timer.daemon = True
        entry.timer.start()

    def _finish_locked(self, entry: PendingCommand) -> None:
        if entry.timer is not None:
            entry.timer.cancel()
        self._current = None
        self._decoder = None
        if self._state is not DispatcherState.CLOSED:
            self._state = DispatcherState.IDLE

    def _close_locked(self) -> Optional[List[PendingCommand]]:
        """Go CLOSED; returns the entries to fail, or None if already closed."""
        if self._state is DispatcherState.CLOSED:
            return None
        failed: List[PendingCommand] = []
        if self._current is not None:
            failed.append(self._current)
            self._finish_locked(self._current)
        failed.extend(self._queue)
        self._queue.clear()
        self._state = DispatcherState.CLOSED
        return failed

    # ---- timer / self-close ----
    def _expire(self, entry: PendingCommand) -> None:
        with self._lock:
            if self._current is not entry:
                return
            state = self._state
            if state is DispatcherState.BUSY:
                self._state = DispatcherState.DISCARDING
                self._arm_locked(entry, self.late_reply_s)
            elif state is DispatcherState.AWAIT_DONE:
                self._finish_locked(entry)

        if state is DispatcherState.BUSY:
            logger.warning("%s timed out after %.3fs", entry.name, self.timeout_s)
            _settle(entry.future, error=CommandTimeoutError(f"{entry.name} timed out after {self.timeout_s:g}s"))
        elif state is DispatcherState.AWAIT_DONE:
            logger.warning("no !done after trap for %s; releasing connection", entry.name)
            self.drain()
        elif state is DispatcherState.DISCARDING:
            logger.warning("no late reply to %s within %.3fs; closing connection", entry.name, self.late_reply_s)
            self._close(ConnectionClosedError(f"{entry.name} never answered; reply stream is out of step"))

    def _close(self, exc: BaseException) -> None:
        if self._fail_all(exc) and self._on_close is not None:
            self._on_close()

    def _fail_all(self, exc: Optional[BaseException]) -> bool:
        with self._lock:
            failed = self._close_locked()
        if failed is None:
            return False

        if failed:
            logger.warning("connection closed; failing %d pending command(s)", len(failed))
        for entry in failed:
            err = ConnectionClosedError(f"Connection closed before {entry.name} completed")
            err.__cause__ = exc
            _settle(entry.future, error=err)
        return True


def _settle(future: Future, *, result=None, error: Optional[BaseException] = None) -> None:
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)
