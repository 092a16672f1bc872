"""
hmis_core.engine - 状态机与事件总线
"""
from hmis_core.engine.state_machine import StateTransition, StateMachineConfig, StateMachine
from hmis_core.engine.event_bus import Event, EventBus, event_bus

__all__ = [
    "StateTransition",
    "StateMachineConfig",
    "StateMachine",
    "Event",
    "EventBus",
    "event_bus",
]
