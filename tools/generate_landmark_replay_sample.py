# -*- coding: utf-8 -*-

"""生成离线可跑通的地标定位回放样例（配置 + 地标地图 + events.jsonl）。

说明：
- `tools/` 仅保留可执行入口；核心生成逻辑位于
  `packages/landmark_localizer/src/landmark_localizer/sample_data.py`。
- 默认输出目录：data/replay/sample/

运行后可用：
- landmark-localizer-replay --config data/replay/sample/landmark_localizer.yaml \
    --landmarks data/replay/sample/landmarks.yaml --events data/replay/sample/events.jsonl
"""

from __future__ import annotations

import argparse
from pathlib import Path

from landmark_localizer import ensure_sample_replay


def main() -> int:
    root = Path(__file__).resolve().parents[1]

    p = argparse.ArgumentParser(description="Generate a landmark localizer replay sample")
    p.add_argument("--out-dir", default=str(root / "data" / "replay" / "sample"), help="output directory")
    p.add_argument("--cycles", type=int, default=30, help="number of processing cycles")
    p.add_argument("--overwrite", action="store_true", help="overwrite existing files")
    args = p.parse_args()

    files = ensure_sample_replay(out_dir=Path(args.out_dir), cycles=int(args.cycles), overwrite=bool(args.overwrite))
    # Use ASCII to avoid Windows console encoding issues.
    print(f"Generated replay sample -> {files.events.parent}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
