from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from mikrolink.wire.sentences import Sentence

# ==== Reply markers ====
RE = "!re"
DONE = "!done"
TRAP = "!trap"
FATAL = "!fatal"

UNKNOWN_ERROR = "Unknown error"


@dataclass(frozen=True)
class ParsedResult:
    success: bool
    data: List[Dict[str, str]] = field(default_factory=list)
    message: Optional[str] = None
    # "=ret=" attribute of the !done sentence (e.g. id of an added item)
    ret: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "message": self.message}
        d: Dict[str, Any] = {"success": True, "data": self.data}
        if self.ret is not None:
            d["ret"] = self.ret
        return d


def reply_marker(sentence: Sentence) -> str:
    return sentence[0] if sentence else ""


def is_terminal(sentence: Sentence) -> bool:
    """True if ``sentence`` ends the reply to the command in flight."""
    if reply_marker(sentence) in (DONE, FATAL):
        return True
    return any(w.startswith(TRAP) for w in sentence)


def attributes(sentence: Sentence) -> Dict[str, str]:
    """Collect ``=key=value`` words of one sentence.

    Only the first ``=`` after the leading one separates key from value, so
    values may themselves contain ``=``.
    """
    attrs: Dict[str, str] = {}
    for w in sentence:
        if not w.startswith("="):
            continue
        key, _, value = w[1:].partition("=")
        attrs[key] = value
    return attrs


def _failure_message(sentence: Sentence) -> str:
    attrs = attributes(sentence)
    if attrs.get("message"):
        return attrs["message"]
    if reply_marker(sentence) == FATAL and len(sentence) > 1 and sentence[1]:
        return sentence[1]
    return UNKNOWN_ERROR


def parse_response(sentences: Iterable[Sentence]) -> ParsedResult:
    """Turn the reply sentences of one command into a ParsedResult.

    - ``!trap`` / ``!fatal``: failure; later sentences are ignored.
    - ``!re``: one data row.
    - ``!done``: nothing, except an optional ``=ret=`` value.
    """
    data: List[Dict[str, str]] = []
    ret: Optional[str] = None

    for sentence in sentences:
        marker = reply_marker(sentence)
        if marker in (TRAP, FATAL):
            return ParsedResult(success=False, message=_failure_message(sentence))
        if marker == RE:
            data.append(attributes(sentence))
        elif marker == DONE:
            ret = attributes(sentence).get("ret", ret)

    return ParsedResult(success=True, data=data, ret=ret)
