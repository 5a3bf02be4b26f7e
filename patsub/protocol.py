"""Protocol message shapes for HTTP and WebSocket (health, subscribe, events, errors)."""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


# ---- Health ----

@dataclass
class HealthResponse:
    """Response for GET /health."""
    uptime_sec: float
    channels: int
    subscriptions: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uptime_sec": int(self.uptime_sec),
            "channels": self.channels,
            "subscriptions": self.subscriptions,
        }


# ---- Subscribe (WebSocket) ----

@dataclass
class SubscribeRequest:
    """Client request to subscribe a pattern on a channel."""
    channel: str
    pattern: Any
    count: Optional[int] = None
    multi: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubscribeRequest":
        if not data.get("channel") or "pattern" not in data:
            raise ValueError("subscribe requires channel and pattern")
        count = data.get("count")
        if count is not None and (isinstance(count, bool) or not isinstance(count, int) or count <= 0):
            raise ValueError("count must be a positive integer")
        return cls(
            channel=str(data["channel"]),
            pattern=data["pattern"],
            count=count,
            multi=bool(data.get("multi", False)),
        )


# ---- Publish (HTTP) ----

@dataclass
class PublishResponse:
    """Response for POST /publish."""
    channel: str
    delivered: int
    status: str = "published"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def channels_list_response(channels: Dict[str, Dict[str, int]]) -> Dict[str, Any]:
    """Response for GET /channels."""
    return {
        "channels": [
            {"name": name, "subscriptions": info["subscriptions"]}
            for name, info in channels.items()
        ]
    }


def stats_response(stats: Dict[str, Any]) -> Dict[str, Any]:
    """Response for GET /stats."""
    return {"channels": stats["channels"], "metrics": stats["metrics"]}


# ---- WebSocket: Server → Client ----

# Error codes (use with ws_error)
ERROR_BAD_REQUEST = "BAD_REQUEST"
ERROR_PATTERN = "PATTERN_ERROR"
ERROR_UNAUTHORIZED = "UNAUTHORIZED"
ERROR_INTERNAL = "INTERNAL"


def ws_ts() -> str:
    """Current UTC timestamp in ISO 8601 (e.g. 2025-08-25T10:00:00Z)."""
    from datetime import datetime, timezone
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def ws_ack(request_id: Optional[str], ts: str, **fields: Any) -> Dict[str, Any]:
    out: Dict[str, Any] = {"type": "ack", "status": "ok", "ts": ts}
    if request_id is not None:
        out["request_id"] = request_id
    out.update({k: v for k, v in fields.items() if v is not None})
    return out


def ws_event(message: Any, ts: str, channel: Optional[str] = None, subscription: Optional[str] = None) -> Dict[str, Any]:
    """Event frame for a delivered message, naming the channel and subscription that matched it."""
    out: Dict[str, Any] = {"type": "event", "message": message, "ts": ts}
    if channel is not None:
        out["channel"] = channel
    if subscription is not None:
        out["subscription"] = subscription
    return out


def ws_error(request_id: Optional[str], code: str, message: str, ts: str) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "type": "error",
        "error": {"code": code, "message": message},
        "ts": ts,
    }
    if request_id is not None:
        out["request_id"] = request_id
    return out


def ws_pong(request_id: str, ts: str) -> Dict[str, Any]:
    return {"type": "pong", "request_id": request_id, "ts": ts}


def ws_info(msg: str, ts: str) -> Dict[str, Any]:
    return {"type": "info", "msg": msg, "ts": ts}
