"""latest-only 后台处理线程。

设计目标：
- 生产方（图像/检测回调线程）只做 submit：写入容量=1 的队列，满则覆盖旧 item，永不阻塞在融合计算上。
- 单个 worker 线程按顺序处理：同一时刻只有一帧在处理，处理完才取下一帧。
- worker 内的异常记录下来，在调用方下一次 submit/close 时重新抛出。

注意：
- 为保持可退出性，阻塞点都使用小正 timeout 轮询。
- 若处理跟不上输入，中间帧会被跳过（符合 latest-only 语义），跳过数见 `dropped`。
"""

from __future__ import annotations

import queue
import threading
from typing import Any, Callable, Generic, TypeVar

_T = TypeVar("_T")


class LatestOnlyWorker(Generic[_T]):
    """单线程 latest-only 处理器。"""

    def __init__(
        self,
        *,
        handler: Callable[[_T], Any],
        on_result: Callable[[Any], None] | None = None,
        poll_timeout_s: float = 0.05,
        name: str = "landmark_localizer_worker",
    ) -> None:
        self._handler = handler
        self._on_result = on_result
        self._poll_timeout_s = float(poll_timeout_s) if float(poll_timeout_s) > 0 else 0.05

        self._q: "queue.Queue[_T]" = queue.Queue(maxsize=1)
        self._stop = threading.Event()
        self._idle = threading.Event()
        self._idle.set()
        self._err: BaseException | None = None
        self._lock = threading.Lock()
        self._dropped = 0
        self._processed = 0
        self._pending = 0

        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def __enter__(self) -> "LatestOnlyWorker[_T]":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()

    @property
    def dropped(self) -> int:
        with self._lock:
            return self._dropped

    @property
    def processed(self) -> int:
        with self._lock:
            return self._processed

    def start(self) -> None:
        self._thread.start()

    def close(self, *, timeout_s: float = 2.0) -> None:
        self._stop.set()
        if self._thread.is_alive():
            self._thread.join(timeout=float(timeout_s))
        self._raise_if_failed()

    def _raise_if_failed(self) -> None:
        if self._err is not None:
            raise RuntimeError("latest-only worker 线程异常") from self._err

    def _set_err(self, exc: BaseException) -> None:
        # 说明：记录首个异常即可；后续异常不覆盖，避免丢失根因。
        if self._err is None:
            self._err = exc

    def submit(self, item: _T) -> None:
        """容量=1 覆盖写入：若满则丢弃旧 item，只保留最新。"""

        self._raise_if_failed()

        # 说明：整个覆盖写入在锁内完成，与 worker 的 pending 计数保持一致。
        with self._lock:
            self._idle.clear()
            try:
                self._q.put_nowait(item)
                self._pending += 1
                return
            except queue.Full:
                pass

            try:
                _ = self._q.get_nowait()
                self._dropped += 1
                self._pending -= 1
            except queue.Empty:
                pass

            try:
                self._q.put_nowait(item)
                self._pending += 1
            except queue.Full:
                self._dropped += 1
                if self._pending <= 0:
                    self._idle.set()

    def wait_idle(self, timeout_s: float) -> bool:
        """等待队列清空且当前没有正在处理的 item。"""

        ok = self._idle.wait(timeout=float(timeout_s))
        self._raise_if_failed()
        return bool(ok)

    def _run(self) -> None:
        try:
            while not self._stop.is_set():
                try:
                    item = self._q.get(timeout=self._poll_timeout_s)
                except queue.Empty:
                    continue

                result = self._handler(item)
                if self._on_result is not None:
                    self._on_result(result)

                with self._lock:
                    self._processed += 1
                    self._pending -= 1
                    if self._pending <= 0:
                        self._pending = 0
                        self._idle.set()
        except BaseException as exc:  # noqa: BLE001
            self._set_err(exc)
            self._idle.set()
