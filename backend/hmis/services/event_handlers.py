"""
事件处理器 - 订阅病房与账单领域事件，写审计日志
"""
import logging

from hmis_core.engine.event_bus import Event, event_bus

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("hmis.audit")


class EventHandlers:
    """
    事件处理器集合

    handle_* 只写日志，不回写数据库；处理器抛出的异常由 EventBus 隔离。
    """

    ROOM_PATTERN = "room.*"
    BILL_PATTERN = "bill.*"

    def __init__(self):
        self._registered = False

    def handle_room_event(self, event: Event) -> None:
        data = event.data
        audit_logger.info(
            f"[{event.event_type}] room={data.get('room_number')} "
            f"{data.get('old_state') or '-'} -> {data.get('new_state')} "
            f"patient={data.get('previous_patient_ref')} -> {data.get('patient_ref')}"
        )

    def handle_bill_event(self, event: Event) -> None:
        data = event.data
        audit_logger.info(
            f"[{event.event_type}] bill={data.get('bill_id')} patient={data.get('patient_ref')} "
            f"total={data.get('total')} status={data.get('payment_status')} "
            f"recomputed={data.get('recomputed')}"
        )

    def register_handlers(self, event_bus_instance=None) -> None:
        """注册所有事件处理器"""
        if self._registered:
            return

        bus = event_bus_instance or event_bus
        bus.subscribe(self.ROOM_PATTERN, self.handle_room_event)
        bus.subscribe(self.BILL_PATTERN, self.handle_bill_event)

        self._registered = True
        logger.info("Event handlers registered successfully")

    def unregister_handlers(self, event_bus_instance=None) -> None:
        """取消注册所有事件处理器（用于测试）"""
        bus = event_bus_instance or event_bus
        bus.unsubscribe(self.ROOM_PATTERN, self.handle_room_event)
        bus.unsubscribe(self.BILL_PATTERN, self.handle_bill_event)

        self._registered = False
        logger.info("Event handlers unregistered")


# 全局事件处理器实例
event_handlers = EventHandlers()


def register_event_handlers():
    """注册所有事件处理器（应用启动时调用）"""
    event_handlers.register_handlers()


__all__ = ["EventHandlers", "event_handlers", "register_event_handlers"]
