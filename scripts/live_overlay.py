"""Run live camera overlay.

Usage:
    uvicorn api.main:app --reload  # (separate, for API)
    python scripts/live_overlay.py [--no-mesh] [--fill] [--reduced]

Press 'q' to quit the window.
"""
import argparse
import logging

from facesignal.config import REDUCED_SAMPLE_INTERVAL_MS, Settings
from facesignal.live import run_live_overlay

if __name__ == '__main__':
    p = argparse.ArgumentParser()
    p.add_argument("--camera", type=int, default=None, help="Camera index")
    p.add_argument("--no-mesh", action="store_true", help="Hide the landmark mesh")
    p.add_argument("--fill", action="store_true", help="Fill the face contour")
    p.add_argument("--reduced", action="store_true", help="Reduced mode (500 ms sampling)")
    args = p.parse_args()

    logging.basicConfig(level=logging.INFO)
    overrides = {"MESH_ENABLED": not args.no_mesh, "MESH_FILL_ENABLED": args.fill}
    if args.reduced:
        overrides["SAMPLE_INTERVAL_MS"] = REDUCED_SAMPLE_INTERVAL_MS
    s = Settings(**overrides)
    run_live_overlay(s, camera_index=args.camera)
