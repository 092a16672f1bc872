"""
领域事件总线
病房、账单两个领域在持久化成功后发布事件；订阅方按事件类型或 "room.*" 这样的
前缀通配订阅。总线保留最近的事件，供管理员审计接口查询。
"""
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime
from collections import deque
import logging
import threading
import uuid

logger = logging.getLogger(__name__)

Handler = Callable[["Event"], None]

WILDCARD = "*"


@dataclass
class Event:
    """领域事件"""
    event_type: str
    timestamp: datetime
    data: Dict[str, Any]
    source: str
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def domain(self) -> str:
        """事件所属领域，如 room.assigned -> room"""
        return self.event_type.split(".", 1)[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "timestamp": self.timestamp,
            "source": self.source,
            "data": dict(self.data),
        }


def matches(pattern: str, event_type: str) -> bool:
    """"*" 匹配全部；"room.*" 匹配 room 领域的全部事件；其余精确匹配"""
    if pattern == WILDCARD:
        return True
    if pattern.endswith(".*"):
        return event_type.startswith(pattern[:-1])
    return pattern == event_type


class EventBus:
    """
    同步事件总线

    订阅键可以是具体事件类型，也可以是通配模式；一个处理器对同一个键只登记一次。
    处理器在发布方线程内依次执行，单个处理器抛错只记日志。
    """

    def __init__(self, history_size: int = 200):
        self._subscribers: Dict[str, List[Handler]] = {}
        self._history: deque = deque(maxlen=history_size)
        self._lock = threading.RLock()

    @property
    def history_size(self) -> int:
        return self._history.maxlen

    def resize_history(self, history_size: int) -> None:
        """调整保留的事件条数，保留最新的部分"""
        if history_size < 1:
            raise ValueError("history_size must be positive")
        with self._lock:
            self._history = deque(self._history, maxlen=history_size)

    def subscribe(self, pattern: str, handler: Handler) -> None:
        with self._lock:
            handlers = self._subscribers.setdefault(pattern, [])
            if handler not in handlers:
                handlers.append(handler)
                logger.debug(f"{getattr(handler, '__name__', handler)} subscribed to {pattern}")

    def unsubscribe(self, pattern: str, handler: Handler) -> None:
        with self._lock:
            handlers = self._subscribers.get(pattern)
            if handlers and handler in handlers:
                handlers.remove(handler)
                if not handlers:
                    del self._subscribers[pattern]

    def handlers_for(self, event_type: str) -> List[Handler]:
        """按订阅顺序列出会收到该类型事件的处理器（去重）"""
        with self._lock:
            found: List[Handler] = []
            for pattern, handlers in self._subscribers.items():
                if not matches(pattern, event_type):
                    continue
                for handler in handlers:
                    if handler not in found:
                        found.append(handler)
            return found

    def publish(self, event: Event) -> None:
        with self._lock:
            self._history.append(event)
        for handler in self.handlers_for(event.event_type):
            try:
                handler(event)
            except Exception:
                logger.exception(
                    f"Event handler {getattr(handler, '__name__', handler)} "
                    f"failed on {event.event_type} ({event.event_id})"
                )

    def get_history(self, event_type: Optional[str] = None, source: Optional[str] = None,
                    limit: int = 50) -> List[Event]:
        """
        最近的事件，最新的在前

        Args:
            event_type: 事件类型或通配模式（"bill.*"）
            source: 发布方，如 room_occupancy
            limit: 最多返回条数
        """
        with self._lock:
            events = list(self._history)
        selected = []
        for event in reversed(events):
            if event_type and not matches(event_type, event.event_type):
                continue
            if source and event.source != source:
                continue
            selected.append(event)
            if len(selected) >= limit:
                break
        return selected

    def clear_subscribers(self) -> None:
        with self._lock:
            self._subscribers.clear()

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()


# 进程内共享的总线
event_bus = EventBus()
