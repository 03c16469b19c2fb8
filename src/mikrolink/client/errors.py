from __future__ import annotations

# ==== Error taxonomy (frozen) ====
E_CLIENT = "E_CLIENT"
E_TIMEOUT = "E_TIMEOUT"
E_CONN_CLOSED = "E_CONN_CLOSED"
E_QUEUE_FULL = "E_QUEUE_FULL"
E_PROTOCOL = "E_PROTOCOL"


class MikrolinkError(Exception):
    """Base class for client-side failures. Router traps are not errors."""

    code = E_CLIENT


class ProtocolError(MikrolinkError):
    code = E_PROTOCOL


class MalformedWordError(ProtocolError):
    pass


class IncompleteWordError(ProtocolError):
    """The buffer ends inside a word; more bytes are needed."""


class CommandTimeoutError(MikrolinkError, TimeoutError):
    code = E_TIMEOUT


class ConnectionClosedError(MikrolinkError, ConnectionError):
    code = E_CONN_CLOSED


class QueueFullError(MikrolinkError):
    code = E_QUEUE_FULL
