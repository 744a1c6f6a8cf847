import unittest
from dataclasses import FrozenInstanceError

from examcore.session.errors import InvalidState, UnknownTask
from examcore.session.progress import ProgressStore, TaskProgress

from tests.helpers import make_registry


class ProgressStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = ProgressStore(make_registry([25, 35, 25, 15]))

    def test_unvisited_tasks_have_no_records(self) -> None:
        self.assertIsNone(self.store.get_answer(2))
        self.assertEqual(self.store.get_progress(2), TaskProgress())
        self.assertEqual(dict(self.store.snapshot().answers), {})

    def test_set_answer_overwrites_in_place(self) -> None:
        self.store.set_answer(1, "first")
        self.store.set_answer(1, "second")
        self.assertEqual(self.store.get_answer(1).raw_value, "second")
        self.assertEqual(self.store.get_progress(1).attempts_count, 2)
        self.assertFalse(self.store.get_progress(1).completed)

    def test_mark_complete_defaults_to_full_points_and_regrades(self) -> None:
        self.assertEqual(self.store.mark_complete(0).score, 25)
        self.store.mark_complete(0, 10)
        self.store.mark_complete(0, 10)
        p = self.store.get_progress(0)
        self.assertTrue(p.completed)
        self.assertEqual(p.score, 10)

    def test_mark_complete_rejects_out_of_range_score(self) -> None:
        with self.assertRaises(ValueError):
            self.store.mark_complete(3, 16)
        with self.assertRaises(ValueError):
            self.store.mark_complete(3, -1)

    def test_unknown_index(self) -> None:
        with self.assertRaises(UnknownTask):
            self.store.set_answer(4, "x")
        with self.assertRaises(IndexError):
            self.store.mark_complete(-1)

    def test_snapshot_is_isolated_and_read_only(self) -> None:
        self.store.set_answer(0, "a")
        snap = self.store.snapshot()
        self.store.set_answer(0, "b")
        self.store.mark_complete(0)
        self.assertEqual(snap.answer_for(0).raw_value, "a")
        self.assertFalse(snap.progress_for(0).completed)
        with self.assertRaises(TypeError):
            snap.answers[0] = None  # type: ignore[index]
        with self.assertRaises(FrozenInstanceError):
            snap.taken_at = None  # type: ignore[misc]

    def test_sealed_store_rejects_mutation(self) -> None:
        self.store.set_answer(0, "kept")
        self.store.seal()
        with self.assertRaises(InvalidState):
            self.store.set_answer(0, "x")
        with self.assertRaises(InvalidState):
            self.store.mark_complete(0)
        self.assertEqual(self.store.get_answer(0).raw_value, "kept")


if __name__ == "__main__":
    unittest.main()
