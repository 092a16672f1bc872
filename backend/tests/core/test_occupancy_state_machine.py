"""
测试 hmis_core.engine.state_machine 与病房占用状态机配置
"""
import pytest

from hmis_core.domain.room import OCCUPANCY_MACHINE
from hmis_core.engine.state_machine import StateMachine, StateMachineConfig, StateTransition


def test_initial_state():
    machine = StateMachine(OCCUPANCY_MACHINE)
    assert machine.current_state == "Available"


def test_unknown_state_rejected():
    with pytest.raises(ValueError):
        StateMachine(OCCUPANCY_MACHINE, current_state="Cleaning")


def test_triggers_per_state():
    assert StateMachine(OCCUPANCY_MACHINE, "Available").triggers() == ["assign"]
    assert StateMachine(OCCUPANCY_MACHINE, "Occupied").triggers() == ["release", "transfer"]


def test_assign_transition():
    machine = StateMachine(OCCUPANCY_MACHINE, "Available")
    assert machine.transition_to("Occupied", "assign") is True
    assert machine.current_state == "Occupied"


def test_assign_from_occupied_not_allowed():
    machine = StateMachine(OCCUPANCY_MACHINE, "Occupied")
    assert machine.can_transition_to("Occupied", "assign") is False
    assert machine.transition_to("Occupied", "assign") is False
    assert machine.current_state == "Occupied"


def test_trigger_must_match_target():
    machine = StateMachine(OCCUPANCY_MACHINE, "Occupied")
    assert machine.can_transition_to("Occupied", "release") is False
    assert machine.can_transition_to("Discharged", "release") is False


def test_transfer_condition():
    machine = StateMachine(OCCUPANCY_MACHINE, "Occupied")
    assert machine.can_transition_to(
        "Occupied", "transfer", {"current_patient_ref": "7", "from_patient": "7"}
    )
    assert not machine.can_transition_to(
        "Occupied", "transfer", {"current_patient_ref": "7", "from_patient": "8"}
    )


def test_failing_condition_is_not_allowed():
    def broken(ctx):
        raise KeyError("missing")

    config = StateMachineConfig(
        name="Door",
        states=["Closed", "Open"],
        transitions=[StateTransition("Closed", "Open", "open", condition=broken)],
        initial_state="Closed",
    )
    machine = StateMachine(config)
    assert machine.transition_to("Open", "open") is False
    assert machine.current_state == "Closed"
