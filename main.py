from __future__ import annotations

import argparse
import logging
import signal
import time
from dataclasses import replace
from typing import List, Optional

from hand_tracking.tracker import HandTracker
from morph.scene import TreeScene
from rendering.renderer import TreeRenderer
from utils.config import GestureConfig, HUDConfig, MorphConfig, RenderConfig, SharedState, VisionConfig

logger = logging.getLogger("main")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Gesture-driven particle tree that blooms into a nebula.")
    parser.add_argument("--camera", action="store_true", help="start with hand tracking enabled")
    parser.add_argument("--camera-index", type=int, default=0, help="OpenCV webcam index")
    parser.add_argument("--seed", type=int, default=None, help="seed for the particle layout")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser.parse_args(argv)


def run(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    vision_cfg = VisionConfig(camera_index=args.camera_index)
    gesture_cfg = GestureConfig()
    morph_cfg = replace(MorphConfig(), seed=args.seed)
    render_cfg = RenderConfig()
    hud_cfg = HUDConfig()

    shared_state = SharedState()
    scene = TreeScene(morph_cfg)
    tracker = HandTracker(shared_state, vision_cfg, gesture_cfg, hud_cfg)
    renderer = TreeRenderer(render_cfg, shared_state, scene, on_toggle_camera=tracker.toggle)

    if args.camera:
        tracker.enable()
    renderer.start()
    logger.info("Press C to toggle the camera, O / F to bloom or collapse without it, Esc to quit")

    def _handle_exit(signum, frame):  # pragma: no cover - signal handling
        shared_state.request_shutdown()

    signal.signal(signal.SIGINT, _handle_exit)
    signal.signal(signal.SIGTERM, _handle_exit)

    try:
        while not shared_state.shutdown_requested():
            time.sleep(0.1)
    finally:
        shared_state.request_shutdown()
        renderer.stop()
        tracker.close()


if __name__ == "__main__":
    run()
