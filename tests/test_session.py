import threading
import time
import unittest
from unittest import mock

from examcore.app import events
from examcore.app.events import EventBus
from examcore.session.clock import ManualClock
from examcore.session.errors import AlreadySubmitted, ConfigurationError, InvalidState, UnknownTask
from examcore.session.state_machine import AssessmentSession, SessionState
from examcore.session.tasks import TaskType, parse_catalog

from tests.helpers import FailingClient, HangingClient, OkClient, make_registry


class AssessmentSessionTests(unittest.TestCase):
    def make_session(self, points=(25, 35, 25, 15), total_seconds=600, threshold=70, **kwargs) -> AssessmentSession:
        self.source = ManualClock()
        self.bus = EventBus()
        self.completed = []
        self.bus.subscribe(events.SESSION_COMPLETED, self.completed.append)
        return AssessmentSession(
            make_registry(list(points)),
            total_seconds=total_seconds,
            pass_threshold=threshold,
            clock_source=self.source,
            bus=self.bus,
            **kwargs,
        )

    def test_lifecycle_and_scoring(self) -> None:
        s = self.make_session()
        self.assertIs(s.state, SessionState.CONFIGURING)
        s.start()
        self.assertIs(s.state, SessionState.ACTIVE)
        for i in (0, 1, 3):
            s.mark_complete(i)
        self.source.advance(42)
        result = s.submit()
        self.assertIs(s.state, SessionState.COMPLETED)
        self.assertEqual((result.total_score, result.max_score, result.percentage), (75, 100, 75))
        self.assertTrue(result.passed)
        self.assertEqual(result.time_spent_seconds, 42)
        self.assertEqual(result.trigger, "user")
        self.assertEqual(self.completed, [result])

    def test_clock_expiry_forces_submission(self) -> None:
        s = self.make_session(total_seconds=120)
        s.start()
        s.mark_complete(0)
        self.source.advance(125)
        self.assertEqual(s.tick(), 0)
        self.assertIs(s.state, SessionState.COMPLETED)
        self.assertEqual(s.result.time_spent_seconds, 120)
        self.assertTrue(s.result.forced)
        self.assertEqual(s.result.total_score, 25)
        self.assertEqual(len(self.completed), 1)

    def test_expired_deadline_wins_over_pending_edit(self) -> None:
        s = self.make_session(total_seconds=60)
        s.start()
        s.set_answer(0, "before")
        self.source.advance(61)
        # No tick arrived yet; the edit itself must notice the deadline.
        with self.assertRaises(InvalidState):
            s.set_answer(0, "too late")
        self.assertIs(s.state, SessionState.COMPLETED)
        self.assertEqual(s.get_answer(0).raw_value, "before")
        self.assertEqual(s.result.trigger, "expired")

    def test_submit_after_deadline_returns_forced_result(self) -> None:
        s = self.make_session(total_seconds=60)
        s.start()
        self.source.advance(70)
        with self.assertRaises(AlreadySubmitted) as ctx:
            s.submit()
        self.assertIs(ctx.exception.result, s.result)
        self.assertTrue(s.result.forced)

    def test_answer_after_completion_is_rejected(self) -> None:
        s = self.make_session()
        s.start()
        s.set_answer(0, "kept")
        first = s.submit()
        with self.assertRaises(InvalidState):
            s.set_answer(0, "x")
        with self.assertRaises(InvalidState):
            s.mark_complete(1)
        self.assertIs(s.result, first)
        self.assertEqual(s.get_answer(0).raw_value, "kept")

    def test_second_submit_raises_already_submitted(self) -> None:
        s = self.make_session()
        s.start()
        first = s.submit_now()
        with self.assertRaises(AlreadySubmitted) as ctx:
            s.submit()
        self.assertIs(ctx.exception.result, first)
        self.assertIs(s.result, first)
        self.assertEqual(len(self.completed), 1)

    def test_pause_freezes_clock_and_blocks_edits(self) -> None:
        s = self.make_session(total_seconds=100)
        s.start()
        self.source.advance(30)
        s.pause()
        self.assertIs(s.state, SessionState.PAUSED)
        self.source.advance(1000)
        self.assertEqual(s.tick(), 70)
        self.assertIs(s.state, SessionState.PAUSED)
        with self.assertRaises(InvalidState):
            s.set_answer(0, "x")
        s.resume()
        self.source.advance(10)
        self.assertEqual(s.remaining(), 60)
        result = s.submit()
        self.assertEqual(result.time_spent_seconds, 40)

    def test_submit_while_paused(self) -> None:
        s = self.make_session()
        s.start()
        s.pause()
        self.assertEqual(s.submit().trigger, "user")
        self.assertIs(s.state, SessionState.COMPLETED)

    def test_pause_not_exposed(self) -> None:
        s = self.make_session(allow_pause=False)
        s.start()
        with self.assertRaises(InvalidState):
            s.pause()
        with self.assertRaises(InvalidState):
            s.resume()

    def test_operations_before_start(self) -> None:
        s = self.make_session()
        self.assertEqual(s.remaining(), 600)
        with self.assertRaises(InvalidState):
            s.set_answer(0, "x")
        with self.assertRaises(InvalidState):
            s.submit()
        s.start()
        with self.assertRaises(InvalidState):
            s.start()

    def test_free_navigation(self) -> None:
        s = self.make_session()
        s.start()
        self.assertEqual(s.go_to(3).index, 3)
        s.set_answer(3, "last first")
        self.assertEqual(s.next_task().index, 3)
        self.assertEqual(s.go_to(0).index, 0)
        self.assertEqual(s.previous_task().index, 0)
        self.assertEqual(s.get_answer(3).raw_value, "last first")
        with self.assertRaises(UnknownTask):
            s.go_to(9)
        s.mark_complete(2)
        self.assertEqual(s.progress_ratio(), 25)

    def test_abandon_discards_everything(self) -> None:
        s = self.make_session()
        abandoned = []
        self.bus.subscribe(events.SESSION_ABANDONED, abandoned.append)
        s.start()
        s.set_answer(0, "x")
        s.abandon()
        self.assertIs(s.state, SessionState.ABANDONED)
        self.assertIsNone(s.result)
        self.assertIsNone(s.get_answer(0))
        self.assertEqual(abandoned, [s])
        self.assertEqual(self.completed, [])
        with self.assertRaises(InvalidState):
            s.submit()
        self.source.advance(10_000)
        s.tick()
        self.assertIsNone(s.result)

    def test_remote_failure_still_completes(self) -> None:
        client = FailingClient()
        s = self.make_session(threshold=80, client=client, timeout=1.0)
        s.start()
        for i in (0, 1, 3):
            s.mark_complete(i)
        with self.assertLogs("examcore.session.submission", level="WARNING"):
            result = s.submit()
        self.assertEqual(client.calls, 1)
        self.assertIs(s.state, SessionState.COMPLETED)
        self.assertEqual(result.passed, result.percentage >= 80)
        self.assertFalse(result.passed)

    def test_remote_fields_merged(self) -> None:
        client = OkClient({"success": True, "result": {"passed": True, "certificateId": "c-9", "xpAwarded": 300}})
        s = self.make_session(client=client)
        s.start()
        result = s.submit()
        self.assertTrue(result.passed)
        self.assertEqual(result.certificate_id, "c-9")
        self.assertEqual(result.xp_awarded, 300)

    def test_objective_tasks_graded_at_submit(self) -> None:
        catalog = parse_catalog(
            {
                "title": "Quick quiz",
                "kind": "exam",
                "durationMinutes": 5,
                "passingScore": 50,
                "tasks": [
                    {"title": "2+2?", "type": "quiz", "correctAnswer": "4"},
                    {"title": "Capital of France?", "type": "multiple_choice", "correct_answer": "Paris"},
                ],
            }
        )
        s = AssessmentSession.from_catalog(catalog, clock_source=ManualClock())
        self.assertEqual(s.total_seconds, 300)
        self.assertEqual(s.registry[1].type, TaskType.MULTIPLE_CHOICE)
        s.start()
        s.set_answer(0, "4")
        s.set_answer(1, "PARIS")
        result = s.submit()
        self.assertEqual((result.total_score, result.max_score, result.percentage), (20, 20, 100))

    def test_cancel_submission_keeps_local_result(self) -> None:
        client = HangingClient()
        s = self.make_session(client=client, timeout=30)
        s.start()
        s.mark_complete(0)
        self.assertFalse(s.cancel_submission())
        outcome = {}
        worker = threading.Thread(target=lambda: outcome.setdefault("result", s.submit()))
        worker.start()
        deadline = time.monotonic() + 5
        while not s.coordinator.in_flight and time.monotonic() < deadline:
            time.sleep(0.01)
        self.assertTrue(s.submitting)
        self.assertTrue(s.cancel_submission())
        worker.join(5)
        client.release.set()
        result = outcome["result"]
        self.assertIs(s.state, SessionState.COMPLETED)
        self.assertEqual(result.total_score, 25)
        self.assertFalse(result.graded_remotely)
        self.assertEqual(client.calls, 1)

    def test_interrupted_grading_wait_completes_with_local_result(self) -> None:
        client = HangingClient()
        s = self.make_session(client=client)
        s.start()
        s.mark_complete(0)
        with mock.patch.object(s.coordinator, "_call_remote", side_effect=KeyboardInterrupt):
            with self.assertRaises(KeyboardInterrupt):
                s.submit()
        self.assertIs(s.state, SessionState.COMPLETED)
        self.assertFalse(s.submitting)
        self.assertEqual(s.result.total_score, 25)
        self.assertFalse(s.result.graded_remotely)
        self.assertEqual(self.completed, [s.result])
        with self.assertRaises(AlreadySubmitted):
            s.submit()
        with self.assertRaises(InvalidState):
            s.abandon()

    def test_threshold_must_be_explicit(self) -> None:
        catalog = parse_catalog({"title": "t", "duration_seconds": 60, "tasks": [{"title": "a"}]})
        with self.assertRaises(ConfigurationError):
            AssessmentSession.from_catalog(catalog)
        s = AssessmentSession.from_catalog(catalog, pass_threshold=60)
        self.assertEqual(s.pass_threshold, 60)
        with self.assertRaises(ConfigurationError):
            self.make_session(threshold=150)
        with self.assertRaises(ConfigurationError):
            self.make_session(total_seconds=0)


if __name__ == "__main__":
    unittest.main()
