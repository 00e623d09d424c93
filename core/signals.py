"""
信号等待 - 阻塞主线程直到收到中断或终止信号
"""

import queue
import signal
import logging
import time
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

DEFAULT_SIGNALS = tuple(
    sig for sig in (signal.SIGINT, getattr(signal, "SIGTERM", None)) if sig is not None
)

POLL_INTERVAL = 0.2  # 秒


def wait_for_shutdown_signal(
    signals: Iterable[int] = DEFAULT_SIGNALS, timeout: Optional[float] = None
) -> Optional[int]:
    """
    等待第一个关闭信号后返回 (只等待一次, 不处理第二个信号)

    必须在主线程调用。返回前恢复原有的信号处理函数。

    Args:
        signals: 关注的信号
        timeout: 最长等待秒数, None 表示一直等待

    Returns:
        收到的信号编号; 超时返回 None
    """
    received: "queue.Queue[int]" = queue.Queue(maxsize=1)

    def _handler(signum, frame):
        try:
            received.put_nowait(signum)
        except queue.Full:
            pass

    previous = {}
    for sig in signals:
        previous[sig] = signal.signal(sig, _handler)
    logger.debug(f"Waiting for signals: {[signal.Signals(s).name for s in previous]}")

    deadline = None if timeout is None else time.monotonic() + timeout
    try:
        while True:
            wait = POLL_INTERVAL
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                wait = min(wait, remaining)
            try:
                signum = received.get(timeout=wait)
            except queue.Empty:
                continue
            logger.info(f"Signal received ({signal.Signals(signum).name}), shutting down...")
            return signum
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
