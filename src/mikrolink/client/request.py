from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator


def format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class Request(BaseModel):
    """A command in path/query/body form.

    ``body`` fields become ``=key=value`` attribute words; ``query`` fields
    become ``?key=value`` words, one per element for list values.
    """

    path: str
    query: Dict[str, Any] = Field(default_factory=dict)
    body: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("path")
    @classmethod
    def _path_format(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith("/"):
            raise ValueError(f"command path must start with '/': {v!r}")
        return v

    @field_validator("query", "body", mode="before")
    @classmethod
    def _none_is_empty(cls, v: Any) -> Any:
        return {} if v is None else v

    def words(self) -> List[str]:
        words = [self.path]

        for name, value in self.body.items():
            words.append(f"={name}={format_value(value)}")

        for name, value in self.query.items():
            if isinstance(value, (list, tuple)):
                words.extend(f"?{name}={format_value(v)}" for v in value)
            else:
                words.append(f"?{name}={format_value(value)}")

        return words


def load_request(raw: Mapping[str, Any]) -> Request:
    try:
        return Request.model_validate(dict(raw))
    except ValidationError as e:
        # Re-raise with a cleaner message for callers that only expect ValueError
        raise ValueError(f"Invalid request: {dict(raw)!r}\n{e}") from e


def build_words(
    path: str,
    query: Optional[Mapping[str, Any]] = None,
    body: Optional[Mapping[str, Any]] = None,
) -> List[str]:
    """Build the ordered word list for ``path`` with optional query/body."""
    return load_request({"path": path, "query": query, "body": body}).words()
