"""landmark_localizer 的 YAML 配置加载入口。

约定：
    - YAML 顶层为 mapping，字段名与 `LocalizerConfig` 一致。
    - 未知字段会报错，避免拼写错误静默失效。
    - target_tag_ids/base_covariance/distance_threshold_m/ekf_* 为必填项。

依赖：
    - 本模块依赖 PyYAML（`pyyaml`）。
"""

from __future__ import annotations

from dataclasses import fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from landmark_localizer.config import LocalizerConfig


def _as_mapping(x: Any) -> Mapping[str, Any]:
    if x is None:
        return {}
    if isinstance(x, Mapping):
        return x
    raise TypeError(f"YAML 根节点必须是 mapping，实际是：{type(x).__name__}")


def localizer_config_from_dict(data: Mapping[str, Any]) -> LocalizerConfig:
    """从 dict（通常来自 YAML）构造 `LocalizerConfig`。

    Raises:
        KeyError: 出现未知字段。
        ValueError: 缺必填字段或取值非法（例如 detection_mode 不合法）。
    """

    allowed = {f.name for f in fields(LocalizerConfig)}
    unknown = sorted(set(data.keys()) - allowed)
    if unknown:
        raise KeyError(f"LocalizerConfig 出现未知字段：{unknown}")

    # 说明：整数 tag id 等类型归一化由 LocalizerConfig.__post_init__ 统一完成。
    try:
        return LocalizerConfig(**dict(data))
    except TypeError as e:
        # 主要用于把“缺必填字段”的错误变得更直观。
        raise ValueError(f"LocalizerConfig 构造失败：{e}") from e


def load_localizer_config_yaml(path: str | Path) -> LocalizerConfig:
    """从 YAML 文件加载 `LocalizerConfig`。"""

    p = Path(path)
    text = p.read_text(encoding="utf-8")
    payload = yaml.safe_load(text)
    return localizer_config_from_dict(_as_mapping(payload))
