"""
测试病房占用：纯转换与 RoomOccupancy 服务
"""
import pytest
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from unittest.mock import Mock

from hmis_core.domain import room as room_domain
from hmis_core.domain.events import EventType
from hmis_core.domain.room import OccupancyState, Room, RoomOccupancy, RoomType
from hmis_core.errors import ConflictError, NotFoundError, ValidationError
from hmis_core.store import InMemoryRecordStore

T0 = datetime(2024, 10, 19, 8, 0, 0)
T1 = datetime(2024, 10, 19, 12, 0, 0)


@pytest.fixture
def available_room():
    return room_domain.new_room("101", "General", "500.00", now=T0)


def assert_invariant(room: Room):
    occupied = room.occupancy_state == OccupancyState.OCCUPIED
    assert occupied == (room.current_patient_ref is not None)
    assert occupied == (room.occupied_since is not None)


class TestRoomTransitions:
    """纯转换函数"""

    def test_new_room_is_available(self, available_room):
        assert available_room.occupancy_state == OccupancyState.AVAILABLE
        assert available_room.room_type == RoomType.GENERAL
        assert available_room.charges_per_day == Decimal("500.00")
        assert_invariant(available_room)

    def test_new_room_rejects_bad_input(self):
        with pytest.raises(ValidationError):
            room_domain.new_room("", "General", 100)
        with pytest.raises(ValidationError) as exc_info:
            room_domain.new_room("101", "Suite", 100)
        assert exc_info.value.field == "room_type"
        with pytest.raises(ValidationError):
            room_domain.new_room("101", "ICU", -1)

    def test_assign(self, available_room):
        room = room_domain.assign(available_room, "patient-7", now=T1)

        assert room.occupancy_state == OccupancyState.OCCUPIED
        assert room.current_patient_ref == "patient-7"
        assert room.occupied_since == T1
        assert_invariant(room)

    def test_assign_occupied_room_conflicts(self, available_room):
        room = room_domain.assign(available_room, "patient-7", now=T1)

        with pytest.raises(ConflictError) as exc_info:
            room_domain.assign(room, "patient-9")
        assert exc_info.value.message == "room already occupied"
        assert room.current_patient_ref == "patient-7"

    def test_release(self, available_room):
        room = room_domain.release(room_domain.assign(available_room, "patient-7"), now=T1)

        assert room.occupancy_state == OccupancyState.AVAILABLE
        assert room.current_patient_ref is None
        assert room.occupied_since is None
        assert_invariant(room)

    def test_release_is_idempotent(self, available_room):
        assert room_domain.release(available_room) is available_room
        released = room_domain.release(room_domain.assign(available_room, "patient-7"))
        assert room_domain.release(released) == released

    def test_transfer(self, available_room):
        room = room_domain.assign(available_room, "patient-7", now=T0)
        moved = room_domain.transfer(room, "patient-7", "patient-9", now=T1)

        assert moved.occupancy_state == OccupancyState.OCCUPIED
        assert moved.current_patient_ref == "patient-9"
        assert moved.occupied_since == T1

    def test_transfer_from_wrong_patient_conflicts(self, available_room):
        room = room_domain.assign(available_room, "patient-7")
        with pytest.raises(ConflictError):
            room_domain.transfer(room, "patient-8", "patient-9")

    def test_transfer_available_room_conflicts(self, available_room):
        with pytest.raises(ConflictError) as exc_info:
            room_domain.transfer(available_room, "patient-7", "patient-9")
        assert exc_info.value.message == "room is not occupied"

    def test_transfer_to_same_patient_rejected(self, available_room):
        room = room_domain.assign(available_room, "patient-7")
        with pytest.raises(ValidationError):
            room_domain.transfer(room, "patient-7", "patient-7")

    def test_ensure_deletable(self, available_room):
        room_domain.ensure_deletable(available_room)
        with pytest.raises(ConflictError):
            room_domain.ensure_deletable(room_domain.assign(available_room, "patient-7"))

    @pytest.mark.parametrize("changes", [
        {"occupancy_state": OccupancyState.OCCUPIED},
        {"current_patient_ref": "patient-7"},
        {"occupied_since": T0},
        {"occupancy_state": OccupancyState.OCCUPIED, "current_patient_ref": "patient-7"},
    ])
    def test_inconsistent_room_cannot_be_built(self, available_room, changes):
        with pytest.raises(ValidationError):
            replace(available_room, **changes)

    def test_invariant_over_sequence(self, available_room):
        room = available_room
        steps = [
            lambda r: room_domain.assign(r, "p1"),
            room_domain.release,
            room_domain.release,
            lambda r: room_domain.assign(r, "p2"),
            lambda r: room_domain.transfer(r, "p2", "p3"),
            room_domain.release,
        ]
        for step in steps:
            room = step(room)
            assert_invariant(room)
        assert room.occupancy_state == OccupancyState.AVAILABLE


class TestRoomOccupancyService:
    """RoomOccupancy 在内存存储上的行为"""

    @pytest.fixture
    def store(self):
        return InMemoryRecordStore()

    @pytest.fixture
    def publisher(self):
        return Mock()

    @pytest.fixture
    def occupancy(self, store, publisher):
        return RoomOccupancy(store, clock=lambda: T1, event_publisher=publisher)

    @pytest.fixture
    def room(self, occupancy):
        return occupancy.register("101", RoomType.GENERAL, 500)

    def test_register(self, room, store):
        assert room.id == 1
        assert room.version == 1
        assert store.get("rooms", 1)["occupancy_state"] == "Available"

    def test_register_duplicate_number_conflicts(self, occupancy, room):
        with pytest.raises(ConflictError):
            occupancy.register("101", "ICU", 6000)

    def test_assign_then_second_assign_conflicts(self, occupancy, room, store):
        occupancy.assign(room.id, "patient-7")

        with pytest.raises(ConflictError):
            occupancy.assign(room.id, "patient-9")
        assert store.get("rooms", room.id)["current_patient_ref"] == "patient-7"

    def test_assign_publishes_event(self, occupancy, room, publisher):
        publisher.reset_mock()
        occupancy.assign(room.id, "patient-7")

        event = publisher.call_args[0][0]
        assert event.event_type == EventType.ROOM_ASSIGNED.value
        assert event.data["old_state"] == "Available"
        assert event.data["new_state"] == "Occupied"
        assert event.data["patient_ref"] == "patient-7"

    def test_release_available_room_writes_nothing(self, occupancy, room, store, publisher):
        publisher.reset_mock()
        result = occupancy.release(room.id)

        assert result.occupancy_state == OccupancyState.AVAILABLE
        assert store.get("rooms", room.id)["version"] == 1
        publisher.assert_not_called()

    def test_transfer(self, occupancy, room):
        occupancy.assign(room.id, "patient-7")
        moved = occupancy.transfer(room.id, "patient-7", "patient-9")

        assert moved.current_patient_ref == "patient-9"
        assert moved.version == 3

    def test_delete_occupied_room_conflicts(self, occupancy, room, store):
        occupancy.assign(room.id, "patient-7")
        before = store.get("rooms", room.id)

        with pytest.raises(ConflictError):
            occupancy.delete(room.id)
        assert store.get("rooms", room.id) == before

    def test_delete_available_room(self, occupancy, room, store):
        occupancy.delete(room.id)
        with pytest.raises(NotFoundError):
            occupancy.get(room.id)

    def test_list_available_and_summary(self, occupancy, room):
        second = occupancy.register("102", "ICU", 6000)
        occupancy.register("100", "Private", 2500)
        occupancy.assign(second.id, "patient-7")

        assert [r.room_number for r in occupancy.list_rooms()] == ["100", "101", "102"]
        assert [r.room_number for r in occupancy.list_available()] == ["100", "101"]
        assert occupancy.occupancy_summary() == {"total": 3, "available": 2, "occupied": 1}

    def test_update_details_keeps_occupancy(self, occupancy, room):
        occupancy.assign(room.id, "patient-7")
        updated = occupancy.update_details(room.id, room_type="Private", charges_per_day="2500")

        assert updated.room_type == RoomType.PRIVATE
        assert updated.charges_per_day == Decimal("2500")
        assert updated.current_patient_ref == "patient-7"

    def test_update_details_rejects_negative_charge(self, occupancy, room):
        with pytest.raises(ValidationError):
            occupancy.update_details(room.id, charges_per_day=-5)

    def test_stale_write_conflicts(self, occupancy, room, store):
        original_get = store.get

        def get_then_concurrent_write(table, record_id):
            record = original_get(table, record_id)
            store.update(table, record_id, {"charges_per_day": Decimal("600")})
            return record

        store.get = get_then_concurrent_write
        with pytest.raises(ConflictError):
            occupancy.assign(room.id, "patient-7")
        store.get = original_get
        assert store.get("rooms", room.id)["occupancy_state"] == "Available"
