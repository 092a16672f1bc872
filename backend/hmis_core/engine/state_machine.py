"""
hmis_core/engine/state_machine.py

状态机引擎 - 声明式状态与转换，带条件守卫
"""
from typing import Dict, List, Any, Optional, Callable
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateTransition:
    """
    状态转换定义

    Attributes:
        from_state: 源状态
        to_state: 目标状态
        trigger: 触发动作
        condition: 可选的转换条件，接收上下文字典
    """

    from_state: str
    to_state: str
    trigger: str
    condition: Optional[Callable[[Dict[str, Any]], bool]] = None

    def is_allowed(self, context: Dict[str, Any]) -> bool:
        """检查转换是否被允许"""
        if self.condition is None:
            return True
        try:
            return bool(self.condition(context))
        except Exception as e:
            logger.error(f"Error checking transition condition for {self.trigger}: {e}")
            return False


@dataclass(frozen=True)
class StateMachineConfig:
    """
    状态机配置

    Attributes:
        name: 状态机名称（通常为实体类型）
        states: 所有状态
        transitions: 转换列表
        initial_state: 初始状态
    """

    name: str
    states: List[str]
    transitions: List[StateTransition]
    initial_state: str


class StateMachine:
    """
    状态机

    一个实例对应一条记录的一次操作：以记录当前状态构造，
    校验并执行一次转换。不持有记录引用。

    Example:
        >>> machine = StateMachine(OCCUPANCY_MACHINE, current_state="Available")
        >>> if machine.can_transition_to("Occupied", "assign"):
        ...     machine.transition_to("Occupied", "assign")
    """

    def __init__(self, config: StateMachineConfig, current_state: Optional[str] = None):
        self._config = config
        self._current_state = current_state if current_state is not None else config.initial_state
        if self._current_state not in config.states:
            raise ValueError(f"Unknown {config.name} state: {self._current_state}")

        # (from_state, trigger) -> transition
        self._transition_map: Dict[str, Dict[str, StateTransition]] = {}
        for t in config.transitions:
            self._transition_map.setdefault(t.from_state, {})[t.trigger] = t

    @property
    def current_state(self) -> str:
        return self._current_state

    @property
    def config(self) -> StateMachineConfig:
        return self._config

    def triggers(self) -> List[str]:
        """当前状态下可用的触发动作"""
        return sorted(self._transition_map.get(self._current_state, {}))

    def can_transition_to(self, target_state: str, trigger: str,
                          context: Optional[Dict[str, Any]] = None) -> bool:
        """
        检查是否可以转换到目标状态

        Args:
            target_state: 目标状态
            trigger: 触发动作
            context: 可选的上下文数据，传给转换条件

        Returns:
            True 如果转换被允许
        """
        if target_state not in self._config.states:
            return False

        transition = self._transition_map.get(self._current_state, {}).get(trigger)
        if transition is None or transition.to_state != target_state:
            return False

        return transition.is_allowed(context or {})

    def transition_to(self, target_state: str, trigger: str,
                      context: Optional[Dict[str, Any]] = None) -> bool:
        """
        执行状态转换

        Returns:
            True 如果转换成功
        """
        if not self.can_transition_to(target_state, trigger, context):
            logger.warning(
                f"Invalid {self._config.name} transition: "
                f"{self._current_state} -> {target_state} (trigger: {trigger})"
            )
            return False

        previous_state = self._current_state
        self._current_state = target_state
        logger.info(
            f"{self._config.name} transition: {previous_state} -> {target_state} (trigger: {trigger})"
        )
        return True


__all__ = [
    "StateTransition",
    "StateMachineConfig",
    "StateMachine",
]
