"""FastAPI web server rendering the lottery page and exposing its actions."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from lottery_dapp import __version__
from lottery_dapp.lottery.models import ActionOutcome
from lottery_dapp.lottery.viewmodel import LotteryViewModel
from lottery_dapp.utils.logger import get_logger

logger = get_logger(__name__)

FRONTEND_FILE = Path(__file__).parent / "frontend" / "index.html"


class TicketAmountRequest(BaseModel):
    amount: str


class BuyTicketRequest(BaseModel):
    amount: Optional[str] = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class LotteryWebServer:
    """HTTP and WebSocket gateway in front of one lottery view-model."""

    def __init__(self, config: Dict[str, Any], view_model: Optional[LotteryViewModel]) -> None:
        self.config = config
        self.view_model = view_model

        self.app = FastAPI(
            title="Lottery dApp",
            description="Wallet-connected client for a pre-deployed lottery contract",
            version=__version__,
        )

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._broadcast_queue: Optional[asyncio.Queue[Tuple[str, Dict[str, Any] | None]]] = None
        self._broadcast_task: Optional[asyncio.Task[None]] = None
        self._ws_lock: Optional[asyncio.Lock] = None
        self._listeners_registered = False
        self._websockets: Set[WebSocket] = set()

        self._setup_middleware()
        self._setup_routes()

    # ------------------------------------------------------------------
    # FastAPI scaffolding
    # ------------------------------------------------------------------
    def _setup_middleware(self) -> None:
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _require_view_model(self) -> LotteryViewModel:
        if self.view_model is None:
            raise HTTPException(status_code=503, detail="Lottery client unavailable")
        return self.view_model

    def _setup_routes(self) -> None:
        @self.app.get("/")
        async def serve_frontend() -> HTMLResponse:
            if not FRONTEND_FILE.exists():
                return HTMLResponse("<h1>Lottery frontend not found</h1>")
            return HTMLResponse(FRONTEND_FILE.read_text(encoding="utf-8"))

        @self.app.get("/api/health")
        async def health_check() -> Dict[str, Any]:
            vm = self.view_model
            return {
                "status": "ok" if vm is not None else "degraded",
                "timestamp": _now(),
                "components": {
                    "web": True,
                    "view_model": vm is not None,
                    "session": vm.state.phase.value if vm else "unavailable",
                },
                "websocket_connections": len(self._websockets),
            }

        @self.app.get("/api/state")
        async def get_state() -> Dict[str, Any]:
            vm = self._require_view_model()
            return {"state": vm.snapshot(), "timestamp": _now()}

        # ------------------------------------------------------------------
        # User actions
        # ------------------------------------------------------------------
        @self.app.post("/api/wallet/connect")
        async def connect_wallet() -> Dict[str, Any]:
            vm = self._require_view_model()
            return self._action_response(await vm.connect())

        @self.app.post("/api/info/refresh")
        async def refresh_info() -> Dict[str, Any]:
            vm = self._require_view_model()
            return self._action_response(await vm.reload())

        @self.app.put("/api/ticket/amount")
        async def set_ticket_amount(request: TicketAmountRequest) -> Dict[str, Any]:
            vm = self._require_view_model()
            vm.set_input_amount(request.amount)
            return {"state": vm.snapshot(), "timestamp": _now()}

        @self.app.post("/api/ticket/buy")
        async def buy_ticket(request: Optional[BuyTicketRequest] = None) -> Dict[str, Any]:
            vm = self._require_view_model()
            # the amount typed in the page travels with the purchase itself
            if request is not None and request.amount is not None:
                vm.set_input_amount(request.amount)
            return self._action_response(await vm.buy_ticket())

        @self.app.post("/api/admin/pick-winner")
        async def pick_winner() -> Dict[str, Any]:
            vm = self._require_view_model()
            return self._action_response(await vm.pick_winner())

        # ------------------------------------------------------------------
        # WebSocket endpoint
        # ------------------------------------------------------------------
        @self.app.websocket("/ws/lottery")
        async def websocket_endpoint(websocket: WebSocket) -> None:
            await websocket.accept()
            if self._ws_lock is None:
                self._ws_lock = asyncio.Lock()
            async with self._ws_lock:
                self._websockets.add(websocket)
            logger.info("WebSocket client connected (%s total)", len(self._websockets))
            try:
                snapshot = self.view_model.snapshot() if self.view_model else None
                await websocket.send_json({"type": "snapshot", "payload": snapshot, "timestamp": _now()})
                while True:
                    try:
                        await websocket.receive_text()
                    except WebSocketDisconnect:
                        break
            finally:
                async with self._ws_lock:
                    self._websockets.discard(websocket)
                logger.info("WebSocket client disconnected (%s remaining)", len(self._websockets))

    def _action_response(self, outcome: ActionOutcome) -> Dict[str, Any]:
        return {
            "outcome": self._serialize_outcome(outcome),
            "state": self.view_model.snapshot(),
            "timestamp": _now(),
        }

    @staticmethod
    def _serialize_outcome(outcome: ActionOutcome) -> Dict[str, Any]:
        return {
            "action": outcome.action,
            "ok": outcome.ok,
            "status": outcome.status,
            "alert": outcome.alert,
            "error_kind": outcome.error_kind,
        }

    # ------------------------------------------------------------------
    # Lifecycle management
    # ------------------------------------------------------------------
    async def start(self, host: str = "0.0.0.0", port: int = 6080) -> None:
        import uvicorn

        logger.info("Starting lottery web server on %s:%s", host, port)
        self._loop = asyncio.get_running_loop()
        if self._broadcast_queue is None:
            self._broadcast_queue = asyncio.Queue()
        if self._ws_lock is None:
            self._ws_lock = asyncio.Lock()
        self._register_view_model_listeners()
        if self._broadcast_task is None:
            self._broadcast_task = asyncio.create_task(self._broadcast_loop(), name="lottery-web-broadcast")

        config = uvicorn.Config(self.app, host=host, port=port, log_level="info", access_log=True)
        server = uvicorn.Server(config)
        try:
            await server.serve()
        finally:
            logger.info("Lottery web server stopped")

    async def stop(self) -> None:
        logger.info("Stopping lottery web server")
        if self._broadcast_task:
            self._broadcast_task.cancel()
            try:
                await self._broadcast_task
            except asyncio.CancelledError:
                pass
            self._broadcast_task = None
        if self._ws_lock is None:
            self._ws_lock = asyncio.Lock()
        async with self._ws_lock:
            for websocket in list(self._websockets):
                try:
                    await websocket.close(code=1001, reason="Server shutdown")
                except RuntimeError as exc:
                    logger.debug("Error closing websocket: %s", exc)
            self._websockets.clear()

    # ------------------------------------------------------------------
    # View-model listeners & broadcasting
    # ------------------------------------------------------------------
    def _register_view_model_listeners(self) -> None:
        if self._listeners_registered or self.view_model is None:
            return
        # alerts reach the page through the action response only
        self.view_model.add_listener("state_update", lambda payload: self._enqueue_broadcast("state_update", payload))
        self._listeners_registered = True

    def _enqueue_broadcast(self, event_type: str, payload: Dict[str, Any] | None) -> None:
        if not self._broadcast_queue or not self._loop:
            return
        try:
            self._loop.call_soon_threadsafe(self._broadcast_queue.put_nowait, (event_type, payload))
            logger.debug("Enqueued broadcast for %s", event_type)
        except RuntimeError:  # pragma: no cover - loop already closing
            logger.debug("Failed to enqueue broadcast for %s", event_type)

    async def _broadcast_loop(self) -> None:
        assert self._broadcast_queue is not None
        while True:
            try:
                event_type, payload = await self._broadcast_queue.get()
                await self._broadcast_to_clients(event_type, payload)
            except asyncio.CancelledError:
                break
            except Exception as exc:  # pragma: no cover
                logger.exception("Broadcast loop error: %s", exc)

    async def _broadcast_to_clients(self, event_type: str, payload: Dict[str, Any] | None) -> None:
        if self._ws_lock is None:
            self._ws_lock = asyncio.Lock()
        message = {"type": event_type, "payload": payload, "timestamp": _now()}
        async with self._ws_lock:
            if not self._websockets:
                return
            to_remove: List[WebSocket] = []
            for websocket in self._websockets:
                try:
                    await websocket.send_json(message)
                except Exception as exc:  # pragma: no cover
                    logger.debug("WebSocket send failed: %s", exc)
                    to_remove.append(websocket)
            for websocket in to_remove:
                self._websockets.discard(websocket)
