from __future__ import annotations

"""Console host for examcore: drives a session from stdin with a background ticker."""

import argparse
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict

from ..config.config import load_config, resolve_pass_threshold, validate_config
from ..results.rewards import level_for_xp, level_progress, xp_for_next_level
from ..results.schema import SessionResult
from ..session.errors import AlreadySubmitted, AssessmentError, ConfigurationError
from ..session.grading_client import HttpGradingClient
from ..session.scheduler import TickScheduler
from ..session.state_machine import AssessmentSession, SessionState
from ..session.tasks import AssessmentCatalog, load_catalog
from . import events
from .events import EventBus

logger = logging.getLogger(__name__)

HELP = """Commands:
  a <text>      answer the current task
  done [score]  mark the current task complete (default: full points)
  go <n>        jump to task n (1-based)
  n / p         next / previous task
  pause         pause the clock
  resume        resume the clock
  status        show time left and progress
  submit        submit now
  quit          leave without submitting
"""


def _fmt_time(seconds: int) -> str:
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def _setup_logging(cfg: Dict[str, Any], explain: bool) -> None:
    logging.basicConfig(
        level=getattr(logging, cfg["logging"]["level"], logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if explain or cfg["logging"].get("explain"):
        from .explain import enable as explain_enable
        explain_enable(True)


def _print_task(session: AssessmentSession) -> None:
    t = session.current_task
    p = session.get_progress(t.index)
    a = session.get_answer(t.index)
    mark = "x" if p.completed else " "
    print(f"\n[{mark}] Task {t.index + 1}/{len(session.registry)} ({t.type.value}, {t.points} pts): {t.title}")
    if t.prompt:
        print(f"    {t.prompt}")
    for i, opt in enumerate(t.options, 1):
        print(f"    {i}. {opt}")
    if a is not None:
        print(f"    current answer: {a.raw_value!r}")


def print_result(result: SessionResult) -> None:
    verdict = "PASSED" if result.passed else "NOT PASSED"
    print("\nSession Summary:")
    print(f"Score: {result.total_score}/{result.max_score} ({result.percentage}%) - {verdict}")
    print(f"Time spent: {_fmt_time(result.time_spent_seconds)}")
    for i, p in enumerate(result.per_task, 1):
        print(f"  Task {i}: {'+' + str(p.score) if p.completed else '0'} pts")
    if result.forced:
        print("Time ran out; progress at that moment was submitted.")
    if not result.graded_remotely:
        print("(scored locally; grading service was not reached)")
    if result.certificate_id:
        print(f"Certificate: {result.certificate_id}")


def notify_rewards(result: SessionResult) -> None:
    """Gamification notification surface: only reads the result."""
    if result.xp_awarded:
        print(f"+{result.xp_awarded} XP")
    if result.leveled_up and result.new_level is not None:
        print(f"Level up! You reached level {result.new_level}" + (f" ({result.rank})" if result.rank else ""))
    total_xp = result.server_fields.get("totalXp")
    if isinstance(total_xp, int) and not isinstance(total_xp, bool):
        level = result.new_level or level_for_xp(total_xp)
        print(f"Level {level}: {level_progress(total_xp, level)}% of the way to {xp_for_next_level(level)} XP")


def _build_session(args: argparse.Namespace, cfg: Dict[str, Any], catalog: AssessmentCatalog, bus: EventBus) -> AssessmentSession:
    grading_cfg = dict(cfg["grading"])
    if args.endpoint:
        grading_cfg["endpoint"] = args.endpoint
    client = HttpGradingClient.from_config({"grading": grading_cfg})
    threshold = resolve_pass_threshold(cfg, catalog.kind, catalog.pass_threshold)
    return AssessmentSession.from_catalog(
        catalog,
        pass_threshold=threshold,
        default_points=int(cfg["scoring"]["default_points"]),
        client=client,
        timeout=float(grading_cfg["timeout_seconds"]),
        allow_pause=bool(cfg["session"]["allow_pause"]) and not args.no_pause,
        bus=bus,
    )


def _handle(session: AssessmentSession, line: str) -> bool:
    """Apply one console command. Returns False when the loop should end."""
    cmd, _, arg = line.strip().partition(" ")
    cmd = cmd.lower()
    idx = session.current_index
    actions: Dict[str, Callable[[], Any]] = {
        "a": lambda: session.set_answer(idx, arg),
        "done": lambda: session.mark_complete(idx, int(arg) if arg else None),
        "go": lambda: session.go_to(int(arg) - 1),
        "n": session.next_task,
        "p": session.previous_task,
        "pause": session.pause,
        "resume": session.resume,
        "submit": session.submit_now,
    }
    if cmd in ("", "status"):
        print(f"Time left {_fmt_time(session.remaining())} | progress {session.progress_ratio()}% | {session.state.value}")
        return True
    if cmd == "quit":
        session.abandon()
        print("Session abandoned; nothing was submitted.")
        return False
    if cmd in ("help", "?"):
        print(HELP)
        return True
    action = actions.get(cmd)
    if action is None:
        print(f"Unknown command '{cmd}'. Type 'help'.")
        return True
    action()
    if session.state is SessionState.COMPLETED:
        return False
    if cmd in ("go", "n", "p", "done"):
        _print_task(session)
    return True


def _run(args: argparse.Namespace, cfg: Dict[str, Any]) -> int:
    catalog = load_catalog(args.catalog)
    bus = EventBus()
    session = _build_session(args, cfg, catalog, bus)

    bus.subscribe(events.CLOCK_EXPIRED, lambda _s: print("\nTime is up! Submitting your progress..."))
    bus.subscribe(events.SESSION_COMPLETED, print_result)
    bus.subscribe(events.SESSION_COMPLETED, notify_rewards)
    if cfg["storage"]["enabled"]:
        from storage.store import ResultHistorySink
        bus.subscribe(
            events.SESSION_COMPLETED,
            ResultHistorySink(Path(cfg["storage"]["data_dir"]), session_id=session.session_id, title=session.title, kind=session.kind),
        )

    print(f"{catalog.title} ({catalog.kind}): {len(session.registry)} tasks, "
          f"{_fmt_time(session.total_seconds)}, pass at {session.pass_threshold:g}%")
    if input("Start now? [Y/n] ").strip().lower() in ("n", "no"):
        return 0

    lock = threading.RLock()
    ticker = TickScheduler(session.tick, interval=float(cfg["clock"]["tick_interval_seconds"]), lock=lock)
    with lock:
        session.start()
        _print_task(session)
    print(HELP)
    ticker.start()
    try:
        while True:
            try:
                line = input("> ")
            except EOFError:
                line = "submit"
            with lock:
                if session.state is SessionState.COMPLETED:
                    break
                try:
                    if not _handle(session, line):
                        break
                except AlreadySubmitted:
                    break
                except (AssessmentError, ValueError) as e:
                    print(f"[WARN] {e}")
    except KeyboardInterrupt:
        with lock:
            if session.state in (SessionState.ACTIVE, SessionState.PAUSED) and not session.submitting:
                session.abandon()
    finally:
        ticker.stop(timeout=2.0)
    return 0


def _show_catalog(args: argparse.Namespace, cfg: Dict[str, Any]) -> int:
    catalog = load_catalog(args.catalog)
    default_points = int(cfg["scoring"]["default_points"])
    try:
        threshold = f"{resolve_pass_threshold(cfg, catalog.kind, catalog.pass_threshold):g}%"
    except ConfigurationError:
        threshold = "not configured"
    print(f"{catalog.title} ({catalog.kind}) - {_fmt_time(catalog.total_seconds())}, pass at {threshold}")
    total = 0
    for i, t in enumerate(catalog.tasks, 1):
        pts = t.points if t.points is not None else default_points
        total += pts
        auto = " [auto-graded]" if t.type.objective and t.correct_answer is not None else ""
        print(f"  {i}. {t.title} ({t.type.value}, {pts} pts){auto}")
    print(f"Max points: {total}")
    return 0


def _history(args: argparse.Namespace, cfg: Dict[str, Any]) -> int:
    from analytics import AnalyticsConfig, compute_summary, ewma_by_session
    from storage.store import export_ndjson, load_all

    data_dir = Path(args.data_dir or cfg["storage"]["data_dir"])
    df = load_all(data_dir)
    if df.empty:
        print(f"No results recorded in {data_dir}")
        return 0
    acfg = AnalyticsConfig()
    summary = compute_summary(df, acfg)
    smoothed = ewma_by_session(df, "percentage", span=acfg.smoothing_span, group_cols=["kind"])
    trend = smoothed.groupby(smoothed["kind"].astype("string"))["percentage_smooth"].last()
    for row in summary.to_dict(orient="records"):
        print(
            f"{row['kind']}: {row['sessions']} sessions, pass rate {row['pass_rate']:.0%} "
            f"(recent {row['recent_pass_rate']:.0%}), mean {row['mean_percentage']:.1f}%, "
            f"trend {float(trend[row['kind']]):.1f}%, "
            f"timed out {row['forced_rate']:.0%}, ungraded {row['fallback_rate']:.0%}"
        )
    if args.export:
        export_ndjson(df, Path(args.export))
        print(f"Exported {len(df)} results to {args.export}")
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="examcore")
    p.add_argument("--config", default=None)
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("show-catalog")
    sp.add_argument("--catalog", required=True)

    rp = sub.add_parser("run")
    rp.add_argument("--catalog", required=True)
    rp.add_argument("--endpoint", default=None, help="Remote grading URL (overrides config)")
    rp.add_argument("--no-pause", action="store_true", help="Do not allow pausing the clock")
    rp.add_argument("--explain", action="store_true")

    hp = sub.add_parser("history")
    hp.add_argument("--data-dir", default=None)
    hp.add_argument("--export", default=None, help="Write the history as NDJSON to this path")

    args = p.parse_args(argv)
    try:
        cfg = validate_config(load_config(args.config))
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        return 2
    _setup_logging(cfg, getattr(args, "explain", False))

    handlers = {"show-catalog": _show_catalog, "run": _run, "history": _history}
    try:
        return handlers[args.cmd](args, cfg)
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
