"""
REST + WebSocket endpoints for the live facial-signal session.
"""
import asyncio
import logging

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import Response

from facesignal.config import Settings
from facesignal.live import LiveFaceAnalyzer
from facesignal.model_provider import ModelProvider
from facesignal.models import AnalysisState, LiveStatus
from facesignal.reporter import StateReporter

# Per-client backlog for slow WebSocket readers; the oldest snapshot is dropped first
WS_QUEUE_DEPTH = 32

router = APIRouter()
settings = Settings()
provider = ModelProvider(settings)
reporter = StateReporter()
live_session = {"analyzer": None}
logger = logging.getLogger(__name__)


def build_analyzer(session_settings: Settings) -> LiveFaceAnalyzer:
    return LiveFaceAnalyzer(session_settings, provider, reporter=reporter)


async def shutdown_live() -> None:
    """Unmount the running session and drop the models (application shutdown)."""
    analyzer = live_session["analyzer"]
    if analyzer is not None:
        await analyzer.unmount()
    live_session["analyzer"] = None
    provider.close()


@router.post("/live/start")
async def live_start(mesh: bool | None = None, interval_ms: float | None = None):
    """
    Mount a live session: load models, open the camera, start sampling.

    Args:
        mesh: Optional override for drawing the landmark mesh overlay.
        interval_ms: Optional override for the sampling period (200 full, 500 reduced).

    Returns:
        dict: status plus the resulting camera state.
    """
    analyzer = live_session["analyzer"]
    if analyzer is not None and analyzer.mounted:
        return {"status": "already_running", "camera": analyzer.camera}

    overrides = {}
    if mesh is not None:
        overrides["MESH_ENABLED"] = mesh
    if interval_ms is not None:
        overrides["SAMPLE_INTERVAL_MS"] = float(interval_ms)
    session_settings = Settings(**{**settings.model_dump(), **overrides}) if overrides else settings
    logger.debug(f"[api] /live/start overrides={overrides}")

    analyzer = build_analyzer(session_settings)
    live_session["analyzer"] = analyzer
    await analyzer.mount()
    status = analyzer.status()
    return {"status": "started", "camera": status.camera, "modelsLoaded": status.models_loaded}


@router.post("/live/stop")
async def live_stop():
    analyzer = live_session["analyzer"]
    if analyzer is None or not analyzer.mounted:
        return {"status": "not_running"}
    await analyzer.unmount()
    return {"status": "stopped"}


@router.get("/live/status", response_model=LiveStatus)
async def live_status():
    analyzer = live_session["analyzer"]
    if analyzer is None:
        return LiveStatus(running=False)
    return analyzer.status()


@router.get("/live/state")
async def live_state() -> dict:
    """Current smoothed state: {frameCount, confidenceLevel, emotions}."""
    analyzer = live_session["analyzer"]
    state = analyzer.state if analyzer is not None else AnalysisState()
    return state.snapshot()


@router.get("/live/overlay.png")
async def live_overlay_png():
    analyzer = live_session["analyzer"]
    if analyzer is None or not analyzer.mounted or analyzer.canvas.empty:
        raise HTTPException(status_code=404, detail="No overlay available")
    png = analyzer.canvas.to_png(mirrored=analyzer.s.MIRROR)
    return Response(content=png, media_type="image/png")


@router.websocket("/live/ws")
async def live_ws(websocket: WebSocket):
    """Send the current state on connect, then one JSON snapshot per reported update."""
    await websocket.accept()
    queue: asyncio.Queue = asyncio.Queue(maxsize=WS_QUEUE_DEPTH)

    def sink(state: AnalysisState) -> None:
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(state.snapshot())

    async def pump():
        while True:
            snapshot = await queue.get()
            try:
                await websocket.send_json(snapshot)
            except (RuntimeError, WebSocketDisconnect):
                return

    analyzer = live_session["analyzer"]
    state = analyzer.state if analyzer is not None else AnalysisState()
    sink(state)
    unregister = reporter.register(sink)
    sender = asyncio.create_task(pump())
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("[api] websocket client disconnected")
    finally:
        unregister()
        sender.cancel()
