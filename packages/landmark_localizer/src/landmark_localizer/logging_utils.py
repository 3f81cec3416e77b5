"""landmark_localizer 的日志工具。

说明：
    库内所有组件（融合器、运行时、回放）共用名为 "landmark_localizer" 的 logger；
    调用方传入自己的 logger 时不经过这里。
    首次获取时挂一个 stderr handler，避免脚本/单测环境中拒绝原因被静默吞掉。
"""

from __future__ import annotations

import logging

LOGGER_NAME = "landmark_localizer"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def parse_log_level(level: str | int) -> int:
    """把 "DEBUG"/"info"/logging.WARNING 之类的输入转为 logging 级别数值。

    Raises:
        ValueError: 未知的级别名。
    """

    if isinstance(level, int):
        return int(level)
    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"unknown log level: {level!r}")
    return value


def default_logger(level: str | int | None = None) -> logging.Logger:
    """获取 landmark_localizer 的默认 logger。

    Args:
        level: 可选；给出时覆盖当前级别（CLI 的 --log-level 走这里）。

    Returns:
        标准库 `logging.Logger` 实例。
    """

    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    if level is not None:
        logger.setLevel(parse_log_level(level))
    return logger
