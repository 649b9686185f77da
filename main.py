#!/usr/bin/env python3
"""
Nudge - a gentle Pomodoro-style focus timer.

Runs from the system tray:
- Focus / short break / long break cycle that waits for you between modes
- Partial credit when you skip a focus session
- Daily totals, a 7-day report and a streak, kept on this device
- Optional AI encouragement for the task you're working on

Usage:
    pip install -e .
    python main.py --task "Write the report"
    python main.py --report
"""

import argparse
import logging
import signal
import sys

logger = logging.getLogger("nudge")


def setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def setup_exception_handling():
    """Log unhandled exceptions before the default hook prints them."""
    def exception_hook(exctype, value, traceback):
        logger.error("Unhandled exception: %s: %s", exctype.__name__, value)
        sys.__excepthook__(exctype, value, traceback)

    sys.excepthook = exception_hook


def setup_signal_handlers(app, controller):
    """Set up signal handlers for graceful shutdown."""
    def signal_handler(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        controller.cleanup()
        app.quit()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def print_report(services) -> int:
    stats = services.stats.get_stats()
    streak = services.stats.check_streak()

    print(f"Today: {stats.today_focus_minutes} min, {stats.today_sessions} sessions")
    print(f"Total: {stats.total_focus_minutes} min, {stats.all_time_sessions} sessions")
    print(f"Streak: {streak.current_streak} days (longest {streak.longest_streak})")
    if services.stats.is_pro():
        print()
        for entry in services.stats.get_weekly_report():
            print(f"  {entry.date:%a %d %b}  {entry.focus_minutes:4d} min  {entry.sessions} sessions")
    return 0


def parse_args(argv):
    parser = argparse.ArgumentParser(description="Nudge focus timer")
    parser.add_argument("--task", help="what you're working on")
    parser.add_argument("--start", action="store_true", help="start the countdown right away")
    parser.add_argument("--report", action="store_true", help="print stats and exit")
    parser.add_argument("--export-csv", metavar="PATH", help="write the weekly report to PATH and exit")
    parser.add_argument("--db", help="database file (defaults to the app data directory)")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point for the Nudge application."""
    args = parse_args(argv if argv is not None else sys.argv[1:])
    setup_logging(args.verbose)
    setup_exception_handling()

    from nudge.app import TrayController, build_services

    if args.export_csv or args.report:
        services = build_services(args.db)
        if args.export_csv:
            count = services.stats.export_weekly_csv(args.export_csv)
            print(f"Wrote {count} days to {args.export_csv}")
            return 0
        return print_report(services)

    from PySide6.QtWidgets import QApplication

    app = QApplication(sys.argv[:1])
    app.setApplicationName("Nudge")
    app.setQuitOnLastWindowClosed(False)

    services = build_services(args.db)
    controller = TrayController(services)
    setup_signal_handlers(app, controller)

    if args.task is not None:
        services.engine.set_task_label(args.task)
    if args.start:
        controller.day_watcher.start_session()

    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
