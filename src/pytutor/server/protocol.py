"""JSON-lines protocol messages exchanged with a front end."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Request:
    """Incoming request: {"id": ..., "method": ..., "params": {...}}."""
    id: int
    method: str
    params: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> Request:
        return cls(
            id=data.get("id", 0),
            method=data["method"],
            params=data.get("params") or {},
        )

    @classmethod
    def from_line(cls, line: str) -> Request:
        """Parse one protocol line; raises ValueError on malformed input."""
        data = json.loads(line)
        if not isinstance(data, dict) or "method" not in data:
            raise ValueError("Request must be an object with a 'method'")
        return cls.from_dict(data)


@dataclass
class Response:
    id: int
    result: Optional[dict] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, req_id: int, exc: Exception) -> Response:
        return cls(id=req_id, error=str(exc) or exc.__class__.__name__)

    def to_json_line(self) -> str:
        d: dict = {"id": self.id}
        if self.error is not None:
            d["error"] = self.error
        else:
            d["result"] = self.result
        return json.dumps(d, default=str) + "\n"


@dataclass
class Notification:
    """Server-initiated message (no id, no response expected)."""
    method: str
    params: dict = field(default_factory=dict)

    def to_json_line(self) -> str:
        return json.dumps({"method": self.method, "params": self.params}) + "\n"
