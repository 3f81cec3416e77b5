"""离线回放入口（CLI / python -m）。

该模块是“薄入口层”，只负责：
- 解析 CLI 参数
- 加载配置与地标地图（配置错误直接退出，返回码 2）
- 调用 `landmark_localizer.replay.run_replay`
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, Sequence

from .cli import build_arg_parser
from .config_yaml import load_localizer_config_yaml
from .frames import StaticFrameTransforms
from .landmark_io import load_landmarks
from .logging_utils import default_logger
from .replay import JsonlPoseSink, iter_jsonl_events, run_replay


def main(argv: Optional[Sequence[str]] = None) -> int:
    """离线回放主入口。"""

    args = build_arg_parser().parse_args(list(argv) if argv is not None else None)

    logger = default_logger(args.log_level)

    try:
        cfg = load_localizer_config_yaml(Path(args.config).resolve())
        frames = StaticFrameTransforms.from_config(cfg.static_transforms)
        landmarks = load_landmarks(Path(args.landmarks).resolve())
    except (KeyError, TypeError, ValueError, RuntimeError, OSError) as exc:
        print(f"config error: {exc}", file=sys.stderr)
        return 2

    out_raw = str(args.out or "").strip()
    try:
        if out_raw:
            out_path = Path(out_raw).resolve()
            out_path.parent.mkdir(parents=True, exist_ok=True)
            with out_path.open("w", encoding="utf-8") as f:
                summary = run_replay(
                    cfg=cfg,
                    frames=frames,
                    landmarks=landmarks,
                    events=iter_jsonl_events(Path(args.events)),
                    sink=JsonlPoseSink(f, flush_every_records=50, flush_interval_s=1.0),
                    logger=logger,
                )
        else:
            summary = run_replay(
                cfg=cfg,
                frames=frames,
                landmarks=landmarks,
                events=iter_jsonl_events(Path(args.events)),
                sink=JsonlPoseSink(sys.stdout),
                logger=logger,
            )
    except (ValueError, RuntimeError) as exc:
        print(str(exc), file=sys.stderr)
        return 2

    logger.info(
        "replay done: events=%d cycles=%d detections=%d accepted=%d",
        summary.n_events,
        summary.n_cycles,
        summary.n_detections,
        summary.n_accepted,
    )
    return 0
