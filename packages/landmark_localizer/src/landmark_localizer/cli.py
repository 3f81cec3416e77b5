"""离线回放 CLI 参数解析。"""

from __future__ import annotations

import argparse


def build_arg_parser() -> argparse.ArgumentParser:
    # 说明：尽量使用 ASCII，避免 --help 在不同终端编码下乱码。
    p = argparse.ArgumentParser(description="Replay landmark detections and emit fused map poses (JSONL)")
    p.add_argument("--config", required=True, help="localizer config file (.yaml/.yml)")
    p.add_argument("--landmarks", required=True, help="landmark map file (.yaml/.yml/.json)")
    p.add_argument("--events", required=True, help="input events JSONL (reference_pose / detections / landmarks)")
    p.add_argument("--out", default="", help="output JSONL path. Empty means stdout.")
    p.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="logging level for the landmark_localizer logger",
    )
    return p
