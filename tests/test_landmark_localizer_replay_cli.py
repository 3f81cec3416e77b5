from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest

from landmark_localizer import ensure_sample_replay
from landmark_localizer.cli import build_arg_parser
from landmark_localizer.entry import main


def _read_jsonl(p: Path) -> list[dict]:
    return [json.loads(line) for line in p.read_text(encoding="utf-8").splitlines() if line.strip()]


def test_build_arg_parser_defaults() -> None:
    args = build_arg_parser().parse_args(["--config", "c.yaml", "--landmarks", "l.yaml", "--events", "e.jsonl"])

    assert str(args.out) == ""
    assert str(args.log_level) == "INFO"


def test_replay_sample_end_to_end(tmp_path: Path) -> None:
    files = ensure_sample_replay(out_dir=tmp_path / "sample", cycles=20)
    out = tmp_path / "out" / "fused.jsonl"

    rc = main(
        [
            "--config",
            str(files.config),
            "--landmarks",
            str(files.landmarks),
            "--events",
            str(files.events),
            "--out",
            str(out),
            "--log-level",
            "WARNING",
        ]
    )

    assert rc == 0
    recs = _read_jsonl(out)
    assert len(recs) > 0

    for r in recs:
        assert r["frame_id"] == "map"
        # 白名单之外的地标（99）永远不会出现在输出里。
        assert r["landmark_id"] in {"0", "1", "2"}
        assert float(r["distance_m"]) <= 13.0
        assert len(r["covariance"]) == 36
        # 样例车辆以 1m/s 沿 x 轴行驶，检测无噪声：输出应与真值一致。
        assert np.allclose(r["position"], [float(r["t"]), 0.0, 0.0], atol=1e-6)
        # 车头始终朝地图 x 轴：航向角为 0，四元数取 w >= 0 的那一支。
        assert float(r["yaw_rad"]) == pytest.approx(0.0, abs=1e-6)
        assert np.allclose(r["orientation_xyzw"], [0.0, 0.0, 0.0, 1.0], atol=1e-6)
        assert float(r["scale"]) >= 1.0


def test_replay_skips_malformed_events(tmp_path: Path) -> None:
    files = ensure_sample_replay(out_dir=tmp_path / "sample", cycles=3)
    lines = files.events.read_text(encoding="utf-8").splitlines()
    lines.insert(1, json.dumps({"type": "detections", "t": 0.0}))
    lines.insert(1, json.dumps({"type": "reference_pose", "t": 0.0, "position": [1.0, 2.0]}))
    files.events.write_text("\n".join(lines) + "\n", encoding="utf-8")

    out = tmp_path / "fused.jsonl"
    rc = main(
        [
            "--config",
            str(files.config),
            "--landmarks",
            str(files.landmarks),
            "--events",
            str(files.events),
            "--out",
            str(out),
        ]
    )

    assert rc == 0
    assert out.exists()


@pytest.mark.parametrize(
    "config_text",
    [
        "target_tag_ids: [0]\n",
        "target_tag_ids: [0]\nunknown_key: 1\n",
    ],
)
def test_replay_config_error_returns_2(tmp_path: Path, config_text: str) -> None:
    files = ensure_sample_replay(out_dir=tmp_path / "sample", cycles=2)
    files.config.write_text(config_text, encoding="utf-8")

    rc = main(["--config", str(files.config), "--landmarks", str(files.landmarks), "--events", str(files.events)])

    assert rc == 2


def test_replay_missing_events_returns_2(tmp_path: Path) -> None:
    files = ensure_sample_replay(out_dir=tmp_path / "sample", cycles=2)

    rc = main(
        [
            "--config",
            str(files.config),
            "--landmarks",
            str(files.landmarks),
            "--events",
            str(tmp_path / "missing.jsonl"),
            "--out",
            str(tmp_path / "fused.jsonl"),
        ]
    )

    assert rc == 2
