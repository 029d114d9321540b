from unittest import TestCase

import txlane.constants as C
from txlane.queue_ledger import QueueLedger


class TestQueueLedger(TestCase):
    def setUp(self):
        self.ledger = QueueLedger()
        self.seen = []
        self.ledger.subscribe(lambda e: self.seen.append((e.id, e.status)))

    def test_ids_increase_from_one(self):
        ids = [self.ledger.add(f"tx {i}").id for i in range(3)]
        self.assertEqual(ids, [1, 2, 3])
        self.assertEqual([e.id for e in self.ledger.snapshot()], [1, 2, 3])

    def test_terminal_update_removes_entry(self):
        e = self.ledger.add("Send 1 XRP")
        self.assertTrue(self.ledger.update(e.id, C.EntryStatus.PROCESSING))
        self.assertTrue(self.ledger.update(e.id, C.EntryStatus.COMPLETED))
        self.assertNotIn(e.id, self.ledger)
        self.assertEqual(
            self.seen, [(1, C.EntryStatus.QUEUED), (1, C.EntryStatus.PROCESSING), (1, C.EntryStatus.COMPLETED)]
        )

    def test_status_given_as_string(self):
        e = self.ledger.add("x")
        self.ledger.update(e.id, "processing")
        self.assertEqual(self.ledger.snapshot()[0].status, C.EntryStatus.PROCESSING)

    def test_unknown_id(self):
        self.assertFalse(self.ledger.update(99, C.EntryStatus.PROCESSING))
        self.assertIsNone(self.ledger.settle(99, C.EntryStatus.ERROR))

    def test_illegal_transitions(self):
        e = self.ledger.add("x")
        with self.assertRaises(ValueError):
            self.ledger.settle(e.id, C.EntryStatus.COMPLETED)
        self.ledger.update(e.id, C.EntryStatus.PROCESSING)
        with self.assertRaises(ValueError):
            self.ledger.update(e.id, C.EntryStatus.QUEUED)
        with self.assertRaises(ValueError):
            self.ledger.settle(e.id, C.EntryStatus.PROCESSING)

    def test_settled_entry_absent_when_listener_runs(self):
        during = []
        self.ledger.subscribe(lambda e: during.append([x.id for x in self.ledger.snapshot()]))
        e = self.ledger.add("x")
        self.ledger.update(e.id, C.EntryStatus.PROCESSING)
        self.ledger.settle(e.id, C.EntryStatus.FAILED)
        self.assertEqual(during, [[1], [1], []])

    def test_snapshot_is_a_copy(self):
        self.ledger.add("x")
        snap = self.ledger.snapshot()
        snap[0].status = C.EntryStatus.ERROR
        snap.clear()
        self.assertEqual(self.ledger.snapshot()[0].status, C.EntryStatus.QUEUED)

    def test_listener_errors_are_contained(self):
        def bad(entry):
            raise RuntimeError("listener broke")

        self.ledger.subscribe(bad)
        with self.assertLogs("txlane.queue", level="ERROR"):
            e = self.ledger.add("x")
        self.assertIn(e.id, self.ledger)

    def test_unsubscribe(self):
        calls = []
        unsubscribe = self.ledger.subscribe(calls.append)
        self.ledger.add("a")
        unsubscribe()
        self.ledger.add("b")
        self.assertEqual(len(calls), 1)

    def test_render(self):
        self.assertEqual(self.ledger.render(), "No transactions in queue.")
        self.ledger.add("Mint 100 USD")
        line = self.ledger.render()
        self.assertRegex(line, r"^ID: 1 \| Mint 100 USD \| queued \| \d\d:\d\d:\d\d$")

    def test_remove(self):
        e = self.ledger.add("x")
        self.assertEqual(self.ledger.remove(e.id).id, e.id)
        self.assertIsNone(self.ledger.remove(e.id))
        self.assertEqual(len(self.ledger), 0)
