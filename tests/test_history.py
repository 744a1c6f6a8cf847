import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydantic import ValidationError

from analytics import AnalyticsConfig, compute_summary, ewma_by_session
from examcore.app import events
from examcore.app.events import EventBus
from examcore.results.schema import SessionResult
from examcore.session.clock import ManualClock
from examcore.session.progress import TaskProgress
from examcore.session.state_machine import AssessmentSession
from storage import ResultHistorySink, ResultRow, load_all, query_kind, row_from_result

from tests.helpers import make_registry

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


def _result(score: int, passed: bool, *, minutes: int = 0, trigger: str = "user", remote: bool = False) -> SessionResult:
    return SessionResult(
        total_score=score,
        max_score=100,
        percentage=score,
        per_task=(TaskProgress(True, score, 1), TaskProgress()),
        time_spent_seconds=600,
        passed=passed,
        submitted_at=T0 + timedelta(minutes=minutes),
        trigger=trigger,
        graded_remotely=remote,
    )


class ResultStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.data_dir = Path(self._tmp.name) / "data"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_row_validation(self) -> None:
        row = row_from_result(_result(80, True), session_id="s1", title="Exam", kind="exam")
        self.assertEqual(row.tasks_total, 2)
        self.assertEqual(row.tasks_completed, 1)
        with self.assertRaises(ValidationError):
            ResultRow(**{**row.dict(), "total_score": 500})
        with self.assertRaises(ValidationError):
            ResultRow(**{**row.dict(), "kind": "quiz-night"})

    def test_total_above_max_is_rejected(self) -> None:
        fields = row_from_result(_result(80, True), session_id="s1", title="Exam", kind="exam").dict()
        with self.assertRaises(ValidationError):
            ResultRow(**{**fields, "total_score": 50, "max_score": 10})
        row = ResultRow(**{**fields, "total_score": 10, "max_score": 10})
        self.assertEqual((row.total_score, row.max_score), (10, 10))

    def test_sink_appends_one_row_per_session(self) -> None:
        ResultHistorySink(self.data_dir, session_id="a", title="Exam", kind="exam")(_result(80, True))
        ResultHistorySink(self.data_dir, session_id="b", title="Sprint", kind="challenge")(_result(40, False, minutes=5))
        ResultHistorySink(self.data_dir, session_id="a", title="Exam", kind="exam")(_result(80, True))
        df = load_all(self.data_dir)
        self.assertEqual(len(df), 2)
        exams = query_kind(df, "exam")
        self.assertEqual(list(exams["session_id"]), ["a"])
        self.assertEqual(int(exams["percentage"][0]), 80)
        with self.assertRaises(ValueError):
            query_kind(df, "quiz")

    def test_completed_session_is_recorded_through_the_bus(self) -> None:
        bus = EventBus()
        source = ManualClock()
        s = AssessmentSession(make_registry([10, 10]), total_seconds=60, pass_threshold=50, clock_source=source, bus=bus, kind="challenge")
        bus.subscribe(events.SESSION_COMPLETED, ResultHistorySink(self.data_dir, session_id=s.session_id, title=s.title, kind=s.kind))
        s.start()
        s.mark_complete(1)
        source.advance(61)
        s.tick()
        df = load_all(self.data_dir)
        self.assertEqual(len(df), 1)
        self.assertEqual(str(df["trigger"][0]), "expired")
        self.assertEqual(int(df["time_spent_s"][0]), 60)

    def test_load_missing_store_is_empty(self) -> None:
        self.assertTrue(load_all(self.data_dir).empty)


class AnalyticsTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        data_dir = Path(self._tmp.name)
        history = [
            ("e1", "exam", _result(90, True, minutes=0, remote=True)),
            ("e2", "exam", _result(50, False, minutes=1, trigger="expired")),
            ("e3", "exam", _result(70, True, minutes=2, remote=True)),
            ("c1", "challenge", _result(60, True, minutes=3)),
        ]
        for sid, kind, result in history:
            ResultHistorySink(data_dir, session_id=sid, title=kind, kind=kind)(result)
        self.df = load_all(data_dir)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_summary_per_kind(self) -> None:
        summary = compute_summary(self.df, AnalyticsConfig(recent_window=2)).set_index("kind")
        exam = summary.loc["exam"]
        self.assertEqual(exam["sessions"], 3)
        self.assertAlmostEqual(exam["pass_rate"], 2 / 3)
        self.assertAlmostEqual(exam["recent_pass_rate"], 0.5)
        self.assertAlmostEqual(exam["mean_percentage"], 70.0)
        self.assertAlmostEqual(exam["forced_rate"], 1 / 3)
        self.assertAlmostEqual(exam["fallback_rate"], 1 / 3)
        self.assertEqual(summary.loc["challenge"]["sessions"], 1)

    def test_empty_summary(self) -> None:
        self.assertTrue(compute_summary(self.df.iloc[0:0], AnalyticsConfig()).empty)

    def test_ewma_per_kind(self) -> None:
        smoothed = ewma_by_session(self.df, "percentage", span=2, group_cols=["kind"])
        self.assertIn("percentage_smooth", smoothed.columns)
        first = smoothed[smoothed["session_id"] == "e1"]["percentage_smooth"].iloc[0]
        self.assertAlmostEqual(float(first), 90.0)
        challenge = smoothed[smoothed["session_id"] == "c1"]["percentage_smooth"].iloc[0]
        self.assertAlmostEqual(float(challenge), 60.0)


if __name__ == "__main__":
    unittest.main()
