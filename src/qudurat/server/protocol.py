"""JSON-lines protocol messages for the grading server.

Arabic text is written as-is (``ensure_ascii=False``); callers must read
stdout as UTF-8.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Optional


def _dump(payload: dict) -> str:
    return json.dumps(payload, ensure_ascii=False) + "\n"


@dataclass
class Request:
    """Incoming request from a client process."""
    id: int
    method: str
    params: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> Request:
        if "method" not in data:
            raise ValueError("Request has no 'method'")
        return cls(
            id=data.get("id", 0),
            method=data["method"],
            params=data.get("params") or {},
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "method": self.method, "params": self.params}


@dataclass
class Response:
    """Outgoing response; carries either a result or an error."""
    id: int
    result: Optional[dict] = None
    error: Optional[str] = None

    def to_json_line(self) -> str:
        d = {"id": self.id}
        if self.error is not None:
            d["error"] = self.error
        else:
            d["result"] = self.result
        return _dump(d)


@dataclass
class Notification:
    """Server-initiated message (no id, no response expected)."""
    method: str
    params: dict = field(default_factory=dict)

    def to_json_line(self) -> str:
        return _dump({"method": self.method, "params": self.params})
