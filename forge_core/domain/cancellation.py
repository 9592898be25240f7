"""请求取消令牌。

一次请求只使用一个 CancellationToken，并在每个挂起点检查：
查询模型、发送请求、读取下一段流、调用工具之前。
取消后 raise_if_cancelled() 抛出 RequestCancelledError；
Provider 客户端通过 bind() 在取消时立即关闭进行中的 HTTP 连接。
"""

import threading
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional

from forge_core.domain.exceptions import RequestCancelledError


class CancellationToken:
    def __init__(self) -> None:
        self._event = threading.Event()
        self._callbacks: List[Callable[[], None]] = []
        self._lock = threading.Lock()

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestCancelledError()

    def on_cancelled(self, callback: Callable[[], None]) -> Callable[[], None]:
        """注册取消回调；已取消时立即执行。返回注销函数。"""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._remove(callback)
        callback()
        return lambda: None

    @contextmanager
    def bind(self, callback: Callable[[], None]) -> Iterator[None]:
        """在 with 块内注册取消回调，退出时注销。

        用于把取消与进行中的 HTTP 请求绑定：取消时关闭连接，阻塞的读取随之返回。
        """
        remove = self.on_cancelled(callback)
        try:
            yield
        finally:
            remove()

    def _remove(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def _cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for cb in callbacks:
            cb()


class CancellationTokenSource:
    """持有并触发 CancellationToken，由调用方（面板消息处理层）创建。"""

    def __init__(self) -> None:
        self.token = CancellationToken()

    def cancel(self) -> None:
        self.token._cancel()


# 未传入令牌时使用，永不取消
NEVER_CANCELLED = CancellationToken()


def ensure_token(token: Optional[CancellationToken]) -> CancellationToken:
    return token if token is not None else NEVER_CANCELLED
