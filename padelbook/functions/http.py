import json
from dataclasses import dataclass, field
from typing import Mapping, Optional

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


@dataclass
class FunctionRequest:
    method: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    def __post_init__(self):
        self.method = self.method.upper()
        self.headers = {str(k).lower(): v for k, v in dict(self.headers).items()}

    def json(self):
        return json.loads(self.body.decode("utf-8"))


@dataclass
class FunctionResponse:
    status: int
    body: bytes = b""
    headers: dict = field(default_factory=dict)

    @classmethod
    def json(cls, payload, status: int = 200, headers: Optional[dict] = None) -> "FunctionResponse":
        merged = dict(headers or {})
        merged["Content-Type"] = "application/json"
        return cls(status, json.dumps(payload, default=str).encode("utf-8"), merged)

    @classmethod
    def text(cls, message: str, status: int = 200, headers: Optional[dict] = None) -> "FunctionResponse":
        merged = dict(headers or {})
        merged.setdefault("Content-Type", "text/plain; charset=utf-8")
        return cls(status, message.encode("utf-8"), merged)

    def json_body(self):
        return json.loads(self.body.decode("utf-8"))
