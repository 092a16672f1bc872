"""
测试 SqlRecordStore 与基于它的病房、账单服务
"""
import pytest
from decimal import Decimal

from hmis.models.ontology import Room
from hmis.models.schemas import BillCreate, BillUpdate, LineItemIn, RoomCreate
from hmis.services.billing_service import BillingService
from hmis.services.room_service import RoomService
from hmis.services.sql_store import SqlRecordStore
from hmis_core.domain.room import OccupancyState
from hmis_core.errors import ConflictError, NotFoundError
from hmis_core.store import RecordStore


def _room_record(number="101"):
    return {
        "room_number": number,
        "room_type": "General",
        "charges_per_day": Decimal("500.00"),
        "occupancy_state": "Available",
    }


class TestSqlRecordStore:

    @pytest.fixture
    def store(self, db_session):
        return SqlRecordStore(db_session)

    def test_satisfies_protocol(self, store):
        assert isinstance(store, RecordStore)

    def test_insert_and_get(self, store):
        record = store.insert("rooms", _room_record())

        assert record["id"] is not None
        assert record["version"] == 1
        assert store.get("rooms", record["id"])["room_number"] == "101"

    def test_unknown_table(self, store):
        with pytest.raises(ValueError):
            store.get("doctors", 1)

    def test_duplicate_room_number_conflicts(self, store):
        store.insert("rooms", _room_record())
        with pytest.raises(ConflictError):
            store.insert("rooms", _room_record())
        assert len(store.find("rooms")) == 1

    def test_update_bumps_version(self, store):
        record = store.insert("rooms", _room_record())
        updated = store.update("rooms", record["id"], {"room_type": "ICU"}, expected_version=1)

        assert updated["room_type"] == "ICU"
        assert updated["version"] == 2

    def test_stale_update_conflicts(self, store):
        record = store.insert("rooms", _room_record())
        store.update("rooms", record["id"], {"room_type": "ICU"})

        with pytest.raises(ConflictError) as exc_info:
            store.update("rooms", record["id"], {"room_type": "Private"}, expected_version=1)
        assert exc_info.value.message == "concurrent modification"
        assert store.get("rooms", record["id"])["room_type"] == "ICU"

    def test_stale_update_from_other_session(self, store, db_engine):
        """另一个会话（模拟另一个进程）先写入"""
        from sqlalchemy.orm import sessionmaker

        record = store.insert("rooms", _room_record())
        other = sessionmaker(bind=db_engine)()
        try:
            SqlRecordStore(other).update("rooms", record["id"], {"room_type": "ICU"}, expected_version=1)
        finally:
            other.close()

        with pytest.raises(ConflictError):
            store.update("rooms", record["id"], {"room_type": "Private"}, expected_version=1)

    def test_update_missing_raises_not_found(self, store):
        with pytest.raises(NotFoundError):
            store.update("rooms", 999, {"room_type": "ICU"}, expected_version=1)

    def test_delete_with_version(self, store):
        record = store.insert("rooms", _room_record())

        with pytest.raises(ConflictError):
            store.delete("rooms", record["id"], expected_version=5)
        store.delete("rooms", record["id"], expected_version=1)
        with pytest.raises(NotFoundError):
            store.get("rooms", record["id"])

    def test_find_by_criteria(self, store):
        store.insert("rooms", _room_record("101"))
        second = store.insert("rooms", _room_record("102"))
        store.update("rooms", second["id"], {"occupancy_state": "Occupied"})

        found = store.find("rooms", occupancy_state="Available")
        assert [r["room_number"] for r in found] == ["101"]


class TestRoomService:

    def test_assign_requires_existing_patient(self, db_session, sample_room):
        service = RoomService(db_session, event_publisher=lambda event: None)
        with pytest.raises(NotFoundError):
            service.assign_room(sample_room.id, 999)

    def test_assign_and_release(self, db_session, sample_room, sample_patient):
        service = RoomService(db_session, event_publisher=lambda event: None)

        room = service.assign_room(sample_room.id, sample_patient.id)
        assert room.current_patient_ref == str(sample_patient.id)
        data = service.get_room_with_patient(sample_room.id)
        assert data["current_patient_name"] == "张三"

        room = service.release_room(sample_room.id)
        assert room.occupancy_state == OccupancyState.AVAILABLE
        row = db_session.query(Room).filter(Room.id == sample_room.id).first()
        assert row.current_patient_ref is None
        assert row.version == 3

    def test_create_room(self, db_session):
        service = RoomService(db_session, event_publisher=lambda event: None)
        room = service.create_room(RoomCreate(room_number="305", room_type="ICU", charges_per_day=Decimal("6000")))

        assert room.id is not None
        assert service.get_summary() == {"total": 1, "available": 1, "occupied": 0}


class TestBillingService:

    def test_create_and_revise(self, db_session, sample_patient, admin_user):
        service = BillingService(db_session, event_publisher=lambda event: None)
        bill = service.create_bill(BillCreate(
            patient_id=sample_patient.id,
            line_items=[
                LineItemIn(description="Consultation", quantity=Decimal("2"), rate=Decimal("50")),
                LineItemIn(description="X-Ray", quantity=Decimal("1"), rate=Decimal("30")),
            ],
            discount_percent=Decimal("10"),
            tax_rate_percent=Decimal("5"),
        ), created_by=admin_user.id)

        assert bill.total == Decimal("123.5")
        assert bill.created_by == admin_user.id

        paid = service.update_bill(bill.id, BillUpdate(payment_status="Paid"))
        assert paid.total == Decimal("123.5")
        assert paid.payment_status.value == "Paid"
        assert paid.version == 2

        details = service.with_details(paid)
        assert details["patient_name"] == "张三"
        assert details["line_items"][0]["amount"] == Decimal("100")

    def test_create_for_missing_patient(self, db_session):
        service = BillingService(db_session, event_publisher=lambda event: None)
        with pytest.raises(NotFoundError):
            service.create_bill(BillCreate(
                patient_id=42,
                line_items=[LineItemIn(description="Bed", quantity=Decimal("1"), rate=Decimal("1"))],
            ))


class TestExactDecimalColumns:

    def test_bill_amounts_round_trip_exactly(self, db_session):
        store = SqlRecordStore(db_session)
        record = store.insert("bills", {
            "patient_ref": "1",
            "line_items": [{"description": "Syrup", "quantity": "3", "rate": "0.33333"}],
            "discount_percent": Decimal("0"),
            "tax_rate_percent": Decimal("7.12345"),
            "subtotal": Decimal("0.99999"),
            "tax_amount": Decimal("0.071233787655"),
            "discount_amount": Decimal("0"),
            "total": Decimal("1.071223787655"),
            "payment_status": "Pending",
        })

        stored = store.get("bills", record["id"])
        assert stored["tax_rate_percent"] == Decimal("7.12345")
        assert stored["tax_amount"] == Decimal("0.071233787655")
        assert stored["subtotal"] == Decimal("0.99999")

    def test_room_charges_round_trip_exactly(self, db_session):
        store = SqlRecordStore(db_session)
        record = store.insert("rooms", {**_room_record(), "charges_per_day": Decimal("499.995")})
        assert store.get("rooms", record["id"])["charges_per_day"] == Decimal("499.995")
