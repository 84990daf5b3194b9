#!/usr/bin/env python3
"""
Operator utility for the retention store: cleanup passes, student reports,
legal reports and a foreground cleanup scheduler.
"""

import argparse
import json
import sys
import time
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from smartproctor.core.config import get_cleanup_interval
from smartproctor.core.dao import RetentionStore
from smartproctor.core.errors import ProctorStoreError
from smartproctor.core.scheduler import CleanupScheduler
from smartproctor.core.storage import create_store
from smartproctor.reports.aggregator import generate_student_report
from smartproctor.reports.legal import ExamSession, LegalReportGenerator, render_text


def open_store(args) -> RetentionStore:
    return RetentionStore(create_store(backend=args.backend, db_path=args.db_path))


def cmd_cleanup(args) -> int:
    store = open_store(args)
    recordings = store.cleanup_expired_recordings()
    events_removed = store.cleanup_expired_events()

    result = {
        "recordings_expired": recordings.expired,
        "recordings_deleted": recordings.deleted,
        "events_removed": events_removed
    }
    if args.json:
        print(json.dumps(result, indent=2))
    elif not args.quiet:
        print("Cleanup completed")
        for key, value in result.items():
            print(f"  {key}: {value}")
    return 0


def cmd_report(args) -> int:
    store = open_store(args)
    report = generate_student_report(store, args.student_id, args.name,
                                     detailed=args.detailed, accessor="proctor_ops")
    print(json.dumps(report, indent=2))
    return 0


def cmd_legal_report(args) -> int:
    store = open_store(args)
    recordings = store.get_recordings_by_student(args.student_id)
    session = ExamSession(
        student_id=args.student_id,
        student_name=args.name,
        session_start=min((r.start_time for r in recordings), default=store.now()),
        duration_minutes=(args.duration if args.duration is not None
                          else sum(r.duration for r in recordings) // 60)
    )

    generator = LegalReportGenerator(clock=store.now)
    document = generator.generate_legal_report(
        session, store.get_events_by_student(args.student_id),
        language=args.language, institution_name=args.institution, exam_title=args.exam_title
    )

    if args.text:
        print(render_text(document))
    else:
        print(json.dumps(document, indent=2, ensure_ascii=False))
    return 0


def cmd_scheduler(args) -> int:
    store = open_store(args)
    interval = args.interval or get_cleanup_interval()
    scheduler = CleanupScheduler(store, interval_sec=interval)

    if not args.quiet:
        print(f"Starting cleanup scheduler (every {interval} seconds), Ctrl+C to stop")

    stop = scheduler.start()
    try:
        while scheduler.running:
            time.sleep(1)
    except KeyboardInterrupt:
        if not args.quiet:
            print("\nStopping cleanup scheduler...")
    finally:
        stop()
    return 0


def cmd_serve(args) -> int:
    import uvicorn

    uvicorn.run(
        "smartproctor.api.main:app",
        host=args.host,
        port=args.port,
        log_level="info",
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="SmartProctor retention and report utilities",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s cleanup                          # Run both cleanup passes once
  %(prog)s report S1 "Ada Lovelace"         # Redacted student report
  %(prog)s report S1 "Ada Lovelace" --detailed
  %(prog)s legal-report S1 "Ada Lovelace" --language es --text
  %(prog)s scheduler --interval 300         # Run cleanup every 5 minutes
  %(prog)s serve --port 8000                # Run the HTTP API

Environment variables:
- STORE_BACKEND=memory|sqlite (backing store)
- DB_PATH=./data/smartproctor.db (sqlite location)
- RETENTION_HOURS=24, GRACE_PERIOD_DAYS=7
        """
    )
    parser.add_argument("--backend", choices=["memory", "sqlite"], help="Override STORE_BACKEND")
    parser.add_argument("--db-path", help="Override DB_PATH")
    parser.add_argument("--quiet", "-q", action="store_true", help="Suppress non-error output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    cleanup = subparsers.add_parser("cleanup", help="Expire and remove overdue entries")
    cleanup.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    cleanup.set_defaults(func=cmd_cleanup)

    report = subparsers.add_parser("report", help="Print a student report")
    report.add_argument("student_id")
    report.add_argument("name")
    report.add_argument("--detailed", action="store_true", help="Include suspicion scores")
    report.set_defaults(func=cmd_report)

    legal = subparsers.add_parser("legal-report", help="Print a legal integrity report")
    legal.add_argument("student_id")
    legal.add_argument("name")
    legal.add_argument("--language", "-l", help="Template language (en, es, fr)")
    legal.add_argument("--institution", help="Institution name")
    legal.add_argument("--exam-title", help="Examination title")
    legal.add_argument("--duration", type=int, help="Exam duration in minutes")
    legal.add_argument("--text", "-t", action="store_true", help="Plain-text rendering instead of JSON")
    legal.set_defaults(func=cmd_legal_report)

    scheduler = subparsers.add_parser("scheduler", help="Run the cleanup scheduler until interrupted")
    scheduler.add_argument("--interval", type=int, help="Seconds between cleanup passes")
    scheduler.set_defaults(func=cmd_scheduler)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        return args.func(args)
    except ProctorStoreError as e:
        print(f"ERROR: {e}")
        return 1
    except Exception as e:
        print(f"ERROR: Unexpected error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
