"""HTTP server: health, stats, channels, publish. WebSocket: ping, subscribe, unsubscribe, unsubscribe_flush, publish."""

from dotenv import load_dotenv
load_dotenv()

import asyncio
import json
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, NamedTuple

from fastapi import APIRouter, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

from patsub.config import get_settings
from patsub.errors import MailboxClosed, PatternError
from patsub.hub import Hub, get_hub
from patsub.mailbox import Mailbox
from patsub.observability import get_logger
from patsub.protocol import (
    HealthResponse,
    PublishResponse,
    SubscribeRequest,
    channels_list_response,
    stats_response,
    ws_ack,
    ws_error,
    ws_event,
    ws_info,
    ws_pong,
    ws_ts,
    ERROR_BAD_REQUEST,
    ERROR_PATTERN,
    ERROR_UNAUTHORIZED,
    ERROR_INTERNAL,
)
from patsub.record import from_wire, to_wire
from patsub.subscription import SubscriptionRef

logger = get_logger("patsub.server")
_start_time: float = 0.0

# Active WebSocket connections for server-initiated heartbeat
_ws_connections: set = set()
_heartbeat_task: asyncio.Task | None = None


class Delivery(NamedTuple):
    ref: SubscriptionRef
    message: Any


class ConnectionMailbox(Mailbox):
    """Mailbox of one WebSocket connection; each item remembers the subscription that delivered it."""

    def deliver(self, ref: SubscriptionRef, message: Any) -> bool:
        return self.enqueue(Delivery(ref, message))

    def _unwrap(self, item: Any) -> Any:
        return item.message if isinstance(item, Delivery) else item


# X-API-Key is compulsory: API_KEY must be set in env (or .env)
def _get_expected_api_key() -> str | None:
    return get_settings().api_key


class XAPIKeyMiddleware(BaseHTTPMiddleware):
    """Require X-API-Key header; API_KEY env must be set."""
    async def dispatch(self, request: Request, call_next):
        if request.scope.get("type") == "websocket":
            return await call_next(request)
        expected = _get_expected_api_key()
        if not expected:
            return JSONResponse(
                status_code=503,
                content={"error": "UNAUTHORIZED", "message": "X-API-Key required (API_KEY env not set)"},
            )
        key = (request.headers.get("X-API-Key") or "").strip()
        if key != expected:
            return JSONResponse(
                status_code=401,
                content={"error": "UNAUTHORIZED", "message": "invalid or missing X-API-Key"},
            )
        return await call_next(request)


async def _heartbeat_loop() -> None:
    """Periodically send info heartbeat (msg: ping) to all connected WebSocket clients."""
    interval = get_settings().heartbeat_interval_sec
    if interval <= 0:
        return
    while True:
        await asyncio.sleep(interval)
        payload = ws_info("ping", ws_ts())
        dead = []
        for ws in list(_ws_connections):
            try:
                await ws.send_json(payload)
            except Exception:
                dead.append(ws)
        for ws in dead:
            _ws_connections.discard(ws)


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _start_time, _heartbeat_task
    _start_time = time.time()
    _heartbeat_task = asyncio.create_task(_heartbeat_loop())
    yield
    if _heartbeat_task is not None:
        _heartbeat_task.cancel()
        try:
            await _heartbeat_task
        except asyncio.CancelledError:
            pass


app = FastAPI(title="Pattern Pub-Sub API", lifespan=lifespan)
app.add_middleware(XAPIKeyMiddleware)

router = APIRouter(prefix="/api/v1")


# ---- Health ----

@router.get("/health")
def health() -> JSONResponse:
    """GET /health → { uptime_sec, channels, subscriptions }."""
    hub = get_hub()
    body = HealthResponse(
        uptime_sec=time.time() - _start_time,
        channels=hub.registry.channel_count(),
        subscriptions=hub.registry.subscription_count(),
    ).to_dict()
    return JSONResponse(content=body, status_code=200)


# ---- Stats ----

@router.get("/stats")
def stats() -> JSONResponse:
    """GET /stats → { channels: { name: { subscriptions } }, metrics: { counters, gauges } }."""
    body = stats_response(get_hub().stats())
    return JSONResponse(content=body, status_code=200)


# ---- Channels ----

@router.get("/channels")
def list_channels() -> JSONResponse:
    """GET /channels → { channels: [ { name, subscriptions } ] }."""
    body = channels_list_response(get_hub().registry.channel_stats())
    return JSONResponse(content=body, status_code=200)


# ---- Publish ----

class PublishBody(BaseModel):
    channel: str
    message: Any = None


@router.post("/publish")
def publish(body: PublishBody) -> JSONResponse:
    """POST /publish { channel, message } → 200 { status, channel, delivered }."""
    channel = (body.channel or "").strip()
    if not channel:
        return JSONResponse(content={"error": "channel is required"}, status_code=400)
    delivered = get_hub().publish(channel, from_wire(body.message))
    return JSONResponse(
        content=PublishResponse(channel=channel, delivered=delivered).to_dict(),
        status_code=200,
    )


# ---- WebSocket (ping, subscribe, unsubscribe, unsubscribe_flush, publish) ----

async def _drain_mailbox(websocket: WebSocket, mailbox: ConnectionMailbox) -> None:
    """Consume the connection's mailbox (blocking receive in executor) and send events until closed."""
    loop = asyncio.get_running_loop()
    while True:
        try:
            item = await loop.run_in_executor(None, mailbox.receive)
        except MailboxClosed:
            break
        except asyncio.CancelledError:
            break
        try:
            await websocket.send_json(ws_event(
                to_wire(item.message),
                ws_ts(),
                channel=item.ref.channel,
                subscription=str(item.ref),
            ))
        except Exception as e:
            logger.exception("drain_error", extra={"owner_id": mailbox.owner_id, "error": str(e)})
            break


def _ws_api_key_ok(websocket: WebSocket) -> bool:
    """Return True if X-API-Key matches API_KEY env. API_KEY must be set."""
    expected = _get_expected_api_key()
    if not expected:
        return False
    key = (websocket.headers.get("x-api-key") or "").strip()
    return key == expected


def _lookup_ref(hub: Hub, msg: Dict[str, Any], refs: Dict[str, SubscriptionRef]) -> SubscriptionRef | None:
    """Return the live subscription named in ``msg``; retired ones are forgotten."""
    sub_id = msg.get("subscription")
    if not isinstance(sub_id, str):
        return None
    ref = refs.get(sub_id)
    if ref is not None and not hub.is_live(ref):
        del refs[sub_id]
        return None
    return ref


def _forget_retired(hub: Hub, refs: Dict[str, SubscriptionRef]) -> None:
    """Drop refs of subscriptions that used up their count."""
    for sub_id in [sub_id for sub_id, ref in refs.items() if not hub.is_live(ref)]:
        del refs[sub_id]


@router.websocket("/ws")
async def websocket_handler(websocket: WebSocket) -> None:
    """
    WebSocket endpoint. Messages: ping, subscribe, unsubscribe, unsubscribe_flush, publish.
    Server replies: pong, ack, event, error, info.
    Each connection owns one mailbox; matched messages arrive as event frames.
    """
    await websocket.accept()
    if not _ws_api_key_ok(websocket):
        await websocket.send_json(ws_error(
            None, ERROR_UNAUTHORIZED,
            "invalid or missing X-API-Key",
            ws_ts(),
        ))
        await websocket.close()
        return
    _ws_connections.add(websocket)
    hub = get_hub()
    mailbox = ConnectionMailbox()
    refs: Dict[str, SubscriptionRef] = {}
    drain_task = asyncio.create_task(_drain_mailbox(websocket, mailbox))
    try:
        while True:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json(ws_error(None, ERROR_BAD_REQUEST, "Invalid JSON", ws_ts()))
                continue
            if not isinstance(msg, dict):
                await websocket.send_json(ws_error(None, ERROR_BAD_REQUEST, "Expected a JSON object", ws_ts()))
                continue
            msg_type = msg.get("type")
            request_id = msg.get("request_id")

            if msg_type == "ping":
                await websocket.send_json(ws_pong(msg.get("request_id", ""), ws_ts()))
                continue

            if msg_type == "subscribe":
                try:
                    req = SubscribeRequest.from_dict(msg)
                except ValueError as e:
                    await websocket.send_json(ws_error(request_id, ERROR_BAD_REQUEST, str(e), ws_ts()))
                    continue
                try:
                    ref = hub.subscribe(req.channel, req.pattern, mailbox, count=req.count, multi=req.multi)
                except PatternError as e:
                    await websocket.send_json(ws_error(request_id, ERROR_PATTERN, str(e), ws_ts()))
                    continue
                _forget_retired(hub, refs)
                refs[str(ref)] = ref
                await websocket.send_json(ws_ack(request_id, ws_ts(), channel=req.channel, subscription=str(ref)))
                continue

            if msg_type in ("unsubscribe", "unsubscribe_flush"):
                ref = _lookup_ref(hub, msg, refs)
                if ref is None:
                    await websocket.send_json(ws_error(
                        request_id, ERROR_BAD_REQUEST,
                        f"{msg_type} requires a subscription id from this connection",
                        ws_ts(),
                    ))
                    continue
                refs.pop(str(ref), None)
                if msg_type == "unsubscribe":
                    hub.unsubscribe(ref)
                    await websocket.send_json(ws_ack(request_id, ws_ts(), subscription=str(ref)))
                else:
                    flushed = hub.unsubscribe_and_flush(ref)
                    await websocket.send_json(ws_ack(request_id, ws_ts(), subscription=str(ref), flushed=flushed))
                continue

            if msg_type == "publish":
                channel = msg.get("channel")
                if not channel or not isinstance(channel, str):
                    await websocket.send_json(ws_error(
                        request_id, ERROR_BAD_REQUEST,
                        "publish requires channel",
                        ws_ts(),
                    ))
                    continue
                delivered = hub.publish(channel, from_wire(msg.get("message")))
                await websocket.send_json(ws_ack(request_id, ws_ts(), channel=channel, delivered=delivered))
                continue

            await websocket.send_json(ws_error(
                request_id, ERROR_BAD_REQUEST,
                f"Unknown type: {msg_type!r}",
                ws_ts(),
            ))
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.exception("websocket_error", extra={"owner_id": mailbox.owner_id, "error": str(e)})
        try:
            await websocket.send_json(ws_error(
                None, ERROR_INTERNAL,
                f"Unexpected server error: {e!s}",
                ws_ts(),
            ))
        except Exception:
            pass
    finally:
        for ref in refs.values():
            hub.unsubscribe(ref)
        mailbox.close()
        drain_task.cancel()
        try:
            await drain_task
        except asyncio.CancelledError:
            pass
        _ws_connections.discard(websocket)


app.include_router(router)
