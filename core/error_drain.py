"""
异步错误上报 - 后台线程记录工作进程上报的错误
"""

import queue
import logging
import threading
from typing import Optional

from core.config import DRAIN_CONFIG

logger = logging.getLogger(__name__)

_STOP = object()


class ErrorDrain:
    """
    有界错误队列

    report() 从不阻塞: 队列满时丢弃最旧的一条并计数。
    """

    def __init__(self, maxsize: int = DRAIN_CONFIG["maxsize"]):
        if maxsize < 1:
            raise ValueError("maxsize must be positive")
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=maxsize)
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self.dropped = 0
        self.logged = 0

    def start(self) -> "ErrorDrain":
        if self._thread is not None:
            raise RuntimeError("error drain already started")
        self._thread = threading.Thread(target=self._run, name="error-drain", daemon=True)
        self._thread.start()
        return self

    def report(self, error: BaseException) -> None:
        """上报一个错误 (不阻塞)"""
        self._put(error)

    # 工作进程直接以可调用对象的方式使用
    __call__ = report

    def _put(self, item: object) -> None:
        with self._lock:
            while True:
                try:
                    self._queue.put_nowait(item)
                    return
                except queue.Full:
                    try:
                        self._queue.get_nowait()
                        self.dropped += 1
                    except queue.Empty:
                        pass

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            logger.error(f"{type(item).__name__}: {item}")
            self.logged += 1

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """停止后台线程, 已入队的错误先被记录"""
        if self._thread is None:
            return
        try:
            self._queue.put(_STOP, timeout=timeout)
        except queue.Full:
            self._put(_STOP)
        self._thread.join(timeout)
        self._thread = None
        if self.dropped:
            logger.warning(f"Error drain dropped {self.dropped} errors")
