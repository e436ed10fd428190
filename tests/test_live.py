import asyncio
import time

import numpy as np
import pytest

from facesignal.config import Settings
from facesignal.errors import ModelLoadFailure
from facesignal.live import LiveFaceAnalyzer
from facesignal.model_provider import ModelProvider
from facesignal.models import EmotionVector
from facesignal.reporter import StateReporter
from helpers import (
    DummyCapture,
    DummyHandle,
    GatedDetect,
    ScriptedDetect,
    dummy_model_set,
    make_detection,
    wait_for,
)

# timer effectively off; ticks are driven by hand
MANUAL = dict(SAMPLE_INTERVAL_MS=60_000, MESH_ENABLED=True)


def _analyzer(settings, provider, detect, capture=None, **kw):
    reports = []
    analyzer = LiveFaceAnalyzer(
        settings, provider,
        capture=capture or DummyCapture(),
        reporter=StateReporter(reports.append),
        detect=detect,
        **kw,
    )
    return analyzer, reports


def test_two_detections_are_averaged():
    s = Settings(**MANUAL)
    prov = ModelProvider(s, loader=lambda _: dummy_model_set())
    detect = ScriptedDetect([
        make_detection(0.9, EmotionVector(happy=0.8, neutral=0.2)),
        make_detection(0.7, EmotionVector(happy=0.4, neutral=0.6)),
    ])
    analyzer, reports = _analyzer(s, prov, detect)

    async def scenario():
        await analyzer.mount()
        await analyzer._analyze()
        await analyzer._analyze()
        state = analyzer.state
        await analyzer.unmount()
        return state

    state = asyncio.run(scenario())
    assert state.frame_count == 2
    assert state.confidence_level == pytest.approx(0.8)
    assert state.emotions.happy == pytest.approx(0.6)
    assert state.emotions.neutral == pytest.approx(0.4)
    assert [r.frame_count for r in reports] == [1, 2]


def test_no_face_ticks_clear_overlay_and_keep_state():
    s = Settings(**MANUAL)
    prov = ModelProvider(s, loader=lambda _: dummy_model_set())
    detect = ScriptedDetect([make_detection(0.85)])
    analyzer, reports = _analyzer(s, prov, detect)

    async def scenario():
        await analyzer.mount()
        await analyzer._analyze()
        drawn = not analyzer.canvas.is_blank()
        blanks = []
        for _ in range(5):
            await analyzer._analyze()
            blanks.append(analyzer.canvas.is_blank())
        state = analyzer.state
        await analyzer.unmount()
        return drawn, blanks, state

    drawn, blanks, state = asyncio.run(scenario())
    assert drawn
    assert blanks == [True] * 5
    assert state.frame_count == 1 and state.confidence_level == pytest.approx(0.85)
    assert len(reports) == 1
    assert detect.calls == 6


def test_unmount_right_after_mount_stops_everything():
    s = Settings(SAMPLE_INTERVAL_MS=20, MESH_ENABLED=True)
    prov = ModelProvider(s, loader=lambda _: dummy_model_set())
    capture = DummyCapture()
    detect = ScriptedDetect([make_detection()] * 10)
    analyzer, reports = _analyzer(s, prov, detect, capture=capture)

    async def scenario():
        await analyzer.mount()
        scheduler = analyzer.scheduler
        await analyzer.unmount()
        await asyncio.sleep(0.1)
        return scheduler

    scheduler = asyncio.run(scenario())
    assert capture.handles[0].stopped
    assert scheduler.fired == 0 and not scheduler.running
    assert detect.calls == 0 and reports == []
    assert analyzer.camera == "idle" and not analyzer.mounted
    assert prov.refs == 0


def test_timer_drives_analysis(settings, provider):
    detect = ScriptedDetect([make_detection(0.8)] * 3)
    analyzer, reports = _analyzer(settings, provider, detect)

    async def scenario():
        async with analyzer:
            assert await wait_for(lambda: detect.calls >= 6)
        return analyzer.state

    state = asyncio.run(scenario())
    assert state.frame_count == 3 == len(reports)
    assert analyzer.canvas.is_blank()


def test_mesh_follows_display_size():
    s = Settings(**MANUAL)
    prov = ModelProvider(s, loader=lambda _: dummy_model_set())
    analyzer, _ = _analyzer(s, prov, ScriptedDetect([make_detection()]),
                            display_size=lambda size: (size[0] // 2, size[1] // 2))

    async def scenario():
        await analyzer.mount()
        await analyzer._analyze()
        size, blank = analyzer.canvas.size, analyzer.canvas.is_blank()
        preview = analyzer.preview_frame()
        await analyzer.unmount()
        return size, blank, preview

    size, blank, preview = asyncio.run(scenario())
    assert size == (320, 240) and not blank
    assert preview.shape == (240, 320, 3)
    assert analyzer.canvas.is_blank()


def test_mesh_disabled_leaves_canvas_blank():
    s = Settings(SAMPLE_INTERVAL_MS=60_000, MESH_ENABLED=False)
    prov = ModelProvider(s, loader=lambda _: dummy_model_set())
    analyzer, reports = _analyzer(s, prov, ScriptedDetect([make_detection()]))

    async def scenario():
        await analyzer.mount()
        await analyzer._analyze()
        blank = analyzer.canvas.is_blank()
        await analyzer.unmount()
        return blank

    assert asyncio.run(scenario())
    assert len(reports) == 1


def test_camera_refused_keeps_models():
    s = Settings(**MANUAL)
    prov = ModelProvider(s, loader=lambda _: dummy_model_set())
    detect = ScriptedDetect([make_detection()])
    analyzer, reports = _analyzer(s, prov, detect, capture=DummyCapture(deny=True))

    async def scenario():
        await analyzer.mount()
        status = analyzer.status()
        await analyzer._analyze()
        await analyzer.unmount()
        return status

    status = asyncio.run(scenario())
    assert status.running and status.camera == "no_camera" and status.models_loaded
    assert detect.calls == 0 and reports == []


def test_model_failure_disables_analysis():
    s = Settings(**MANUAL)

    def loader(_):
        raise ModelLoadFailure("face_expression", "missing directory")

    prov = ModelProvider(s, loader=loader)
    detect = ScriptedDetect([make_detection()])
    capture = DummyCapture()
    analyzer, reports = _analyzer(s, prov, detect, capture=capture)

    async def scenario():
        await analyzer.mount()
        status = analyzer.status()
        await analyzer._analyze()
        preview = analyzer.preview_frame()
        await analyzer.unmount()
        return status, preview

    status, preview = asyncio.run(scenario())
    assert status.camera == "ready" and not status.models_loaded
    assert preview is not None
    assert detect.calls == 0 and reports == []
    assert capture.handles[0].stopped


def test_remount_resets_state_and_stops_old_camera():
    s = Settings(**MANUAL)
    prov = ModelProvider(s, loader=lambda _: dummy_model_set())
    capture = DummyCapture()
    analyzer, _ = _analyzer(s, prov, ScriptedDetect([make_detection()]), capture=capture)

    async def scenario():
        await analyzer.mount()
        await analyzer._analyze()
        before = analyzer.state.frame_count
        await analyzer.mount()
        after = analyzer.state.frame_count
        refs = prov.refs
        await analyzer.unmount()
        return before, after, refs

    before, after, refs = asyncio.run(scenario())
    assert (before, after) == (1, 0)
    assert len(capture.handles) == 2 and all(h.stopped for h in capture.handles)
    assert refs == 1 and prov.refs == 0 and prov.loads == 1


def test_result_arriving_after_unmount_is_dropped():
    s = Settings(SAMPLE_INTERVAL_MS=10, MESH_ENABLED=True)
    prov = ModelProvider(s, loader=lambda _: dummy_model_set())
    detect = GatedDetect(make_detection())
    analyzer, reports = _analyzer(s, prov, detect)

    async def scenario():
        await analyzer.mount()
        assert await wait_for(detect.entered.is_set)
        unmount = asyncio.create_task(analyzer.unmount())
        await asyncio.sleep(0.02)
        detect.gate.set()
        await unmount
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert reports == []
    assert analyzer.state.frame_count == 0
    assert analyzer.canvas.is_blank()


def test_status_when_idle(settings, provider):
    analyzer = LiveFaceAnalyzer(settings, provider, capture=DummyCapture())
    st = analyzer.status()
    assert not st.running and st.camera == "idle" and not st.models_loaded
    assert st.started_at is None
    assert analyzer.preview_frame() is None
    assert analyzer.display_size((640, 480)) == (640, 480)


def test_preview_is_mirrored(settings, provider):
    analyzer = LiveFaceAnalyzer(settings, provider, capture=DummyCapture(), detect=ScriptedDetect([]))

    async def scenario():
        await analyzer.mount()
        handle = analyzer._handle
        handle.frame[:, :10] = 255
        preview = analyzer.preview_frame()
        await analyzer.unmount()
        return preview

    preview = asyncio.run(scenario())
    assert preview[100, -1].tolist() == [255, 255, 255]
    assert preview[100, 0].tolist() == [0, 0, 0]


class SlowStopHandle(DummyHandle):
    def stop(self):
        time.sleep(0.3)
        super().stop()


class SlowStopCapture(DummyCapture):
    async def start(self):
        handle = SlowStopHandle()
        self.handles.append(handle)
        return handle


def test_unmount_keeps_event_loop_responsive():
    s = Settings(**MANUAL)
    prov = ModelProvider(s, loader=lambda _: dummy_model_set())
    capture = SlowStopCapture()
    analyzer, _ = _analyzer(s, prov, ScriptedDetect([]), capture=capture)

    async def scenario():
        beats = []

        async def heartbeat():
            while True:
                beats.append(1)
                await asyncio.sleep(0.01)

        await analyzer.mount()
        pulse = asyncio.create_task(heartbeat())
        await asyncio.sleep(0)
        before = len(beats)
        await analyzer.unmount()
        during = len(beats) - before
        pulse.cancel()
        return during

    during = asyncio.run(scenario())
    assert capture.handles[0].stopped
    assert during >= 10
