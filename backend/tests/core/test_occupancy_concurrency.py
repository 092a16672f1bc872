"""
测试并发：同一病房的并发分配只有一个成功
"""
import threading

from hmis_core.domain.room import RoomOccupancy
from hmis_core.errors import ConflictError
from hmis_core.store import InMemoryRecordStore, KeyedLock
from hmis_core.domain.billing import BillingLedger


def _run_concurrently(count, target):
    barrier = threading.Barrier(count)
    results = []
    results_lock = threading.Lock()

    def worker(index):
        barrier.wait()
        try:
            outcome = target(index)
        except ConflictError as e:
            outcome = e
        with results_lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


class TestConcurrentAssign:

    def test_exactly_one_assign_succeeds(self):
        store = InMemoryRecordStore()
        occupancy = RoomOccupancy(store, event_publisher=lambda event: None)
        room = occupancy.register("101", "General", 500)

        results = _run_concurrently(16, lambda i: occupancy.assign(room.id, f"patient-{i}"))

        winners = [r for r in results if not isinstance(r, ConflictError)]
        losers = [r for r in results if isinstance(r, ConflictError)]
        assert len(winners) == 1
        assert len(losers) == 15
        stored = occupancy.get(room.id)
        assert stored.current_patient_ref == winners[0].current_patient_ref
        assert stored.version == 2

    def test_services_sharing_locks_serialize(self):
        """两个服务实例共享锁表时，仍然只有一个分配成功"""
        store = InMemoryRecordStore()
        locks = KeyedLock()
        first = RoomOccupancy(store, locks=locks, event_publisher=lambda event: None)
        second = RoomOccupancy(store, locks=locks, event_publisher=lambda event: None)
        room = first.register("202", "ICU", 6000)

        results = _run_concurrently(
            10, lambda i: (first if i % 2 else second).assign(room.id, f"patient-{i}")
        )

        assert sum(1 for r in results if not isinstance(r, ConflictError)) == 1
        assert locks.active_keys() == 0

    def test_separate_lock_tables_detected_by_version(self):
        """锁表不共享时，版本号保证不会静默覆盖"""
        store = InMemoryRecordStore()
        services = [RoomOccupancy(store, event_publisher=lambda event: None) for _ in range(8)]
        room = services[0].register("303", "Private", 2500)

        results = _run_concurrently(8, lambda i: services[i].assign(room.id, f"patient-{i}"))

        winners = [r for r in results if not isinstance(r, ConflictError)]
        assert len(winners) == 1
        assert services[0].get(room.id).current_patient_ref == winners[0].current_patient_ref


class TestConcurrentRevise:

    def test_concurrent_status_revisions_all_apply(self):
        store = InMemoryRecordStore()
        ledger = BillingLedger(store, event_publisher=lambda event: None)
        bill = ledger.create("7", [{"description": "Bed", "quantity": 1, "rate": 100}])

        methods = [f"method-{i}" for i in range(12)]
        results = _run_concurrently(12, lambda i: ledger.revise(bill.id, {"payment_method": methods[i]}))

        assert not any(isinstance(r, ConflictError) for r in results)
        stored = ledger.get(bill.id)
        assert stored.version == 13
        assert stored.payment_method in methods
