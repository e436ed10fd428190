"""
CLI to run a headless live session -> JSON.
"""
from __future__ import annotations
import argparse, asyncio, json, os
from facesignal.capture import CaptureSource
from facesignal.config import REDUCED_SAMPLE_INTERVAL_MS, Settings
from facesignal.live import LiveFaceAnalyzer
from facesignal.model_provider import ModelProvider
from facesignal.reporter import StateReporter


def _parse_source(raw: str | None):
    if raw is None:
        return None
    return int(raw) if raw.isdigit() else raw


async def run_session(settings: Settings, seconds: float, source=None) -> dict:
    timeline: list[dict] = []
    provider = ModelProvider(settings)
    reporter = StateReporter(lambda st: timeline.append(st.snapshot()))
    analyzer = LiveFaceAnalyzer(settings, provider, CaptureSource(settings, source=source), reporter)
    try:
        async with analyzer:
            await asyncio.sleep(seconds)
            status = analyzer.status()
    finally:
        provider.close()
    return {
        "camera": status.camera,
        "models_loaded": status.models_loaded,
        "final": analyzer.state.snapshot(),
        "timeline": timeline,
    }


def main():
    p = argparse.ArgumentParser()
    p.add_argument("--seconds", type=float, default=10.0, help="How long to sample")
    p.add_argument("--source", default=None, help="Camera index or video path/URL")
    p.add_argument("--interval-ms", type=float, default=None, help="Sampling period in ms")
    p.add_argument("--reduced", action="store_true", help="Reduced mode (500 ms sampling)")
    p.add_argument("--out", default="output/analysis.json", help="Path to output JSON")
    args = p.parse_args()

    overrides = {}
    if args.reduced:
        overrides["SAMPLE_INTERVAL_MS"] = REDUCED_SAMPLE_INTERVAL_MS
    if args.interval_ms is not None:
        overrides["SAMPLE_INTERVAL_MS"] = args.interval_ms
    settings = Settings(**overrides)

    result = asyncio.run(run_session(settings, args.seconds, _parse_source(args.source)))
    print(json.dumps(result["final"], indent=2, ensure_ascii=False))

    os.makedirs(os.path.dirname(args.out) or ".", exist_ok=True)
    with open(args.out, "w", encoding="utf-8") as f:
        json.dump(result, f, indent=2, ensure_ascii=False)
    print(f"✅ Analysis written to {args.out} ({len(result['timeline'])} updates, camera={result['camera']})")

if __name__ == "__main__":
    main()
