#!/usr/bin/env python3
"""
ADE Planning - timetable of the BUT GEII classes from the ADE server.

This is the command-line entry point. It loads the timetable on the
background worker and prints the requested view.
"""

import sys
import argparse
from pathlib import Path

from PySide6.QtCore import QCoreApplication, QTimer

from ade_backend.config import Config
from ade_backend.kv_store import create_store
from ade_backend.log_sink import LogSink
from ade_backend.timetable import TimetableLoad, TimetableService
from ade_backend.acquisition_worker import AcquisitionWorker
from ade_backend.feed import (
    filter_by_group,
    filter_by_room,
    filter_by_teacher,
    group_alphabetically,
    list_groups,
    list_rooms,
    list_teachers,
)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="ADE Planning - BUT GEII timetable from the ADE server"
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        help="Path to configuration file (default: auto-detect)"
    )
    parser.add_argument(
        "--force-refresh",
        action="store_true",
        help="Drop cached data and regenerate the feed location"
    )
    parser.add_argument(
        "--year",
        default="BUT1",
        help="Cohort of the --group argument (default: BUT1)"
    )
    view = parser.add_mutually_exclusive_group()
    view.add_argument("--group", help="Show the sessions of one group of --year")
    view.add_argument("--room", help="Show the sessions in rooms matching this text")
    view.add_argument("--teacher", help="Show the sessions of teachers matching this text")
    view.add_argument("--rooms", action="store_true", help="List known rooms")
    view.add_argument("--groups", action="store_true", help="List known groups")
    view.add_argument("--teachers", action="store_true", help="List known teachers by initial")
    view.add_argument("--logs", action="store_true", help="Print the diagnostic log and exit")
    view.add_argument("--clear-logs", action="store_true", help="Clear the diagnostic log and exit")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output"
    )
    return parser.parse_args(argv)


def print_load(load: TimetableLoad, args) -> int:
    """Print the requested view of a finished load; returns the exit code."""
    result = load.acquisition
    if result is not None:
        state = []
        if result.from_cache:
            state.append("cached")
        if result.is_offline:
            state.append("offline")
        if result.cancelled:
            state.append("cancelled")
        suffix = f" ({', '.join(state)})" if state else ""
        print(f"Feed location: {result.location or 'unavailable'}{suffix}")
    elif load.from_event_cache:
        print("Timetable loaded from the local event cache")

    if load.error and not load.events:
        print(f"Error: {load.error}")
        return 1

    if args.rooms:
        for room in list_rooms(load.events):
            print(room)
    elif args.groups:
        for group in list_groups(load.events):
            print(group)
    elif args.teachers:
        for letter, names in group_alphabetically(list_teachers(load.events)).items():
            print(f"{letter}:")
            for name in names:
                print(f"  {name}")
    else:
        events = load.events
        if args.group:
            events = filter_by_group(events, args.year, args.group)
        elif args.room:
            events = filter_by_room(events, args.room)
        elif args.teacher:
            events = filter_by_teacher(events, args.teacher)
        for event in events:
            print(f"{event.start:%Y-%m-%d %H:%M}-{event.end:%H:%M}  {event.course_type:5} "
                  f"{event.title}  [{event.location}]")
        print(f"{len(events)} sessions")
    return 0


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = Config.load(args.config)
    except FileNotFoundError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        print(f"Error loading configuration: {e}")
        sys.exit(1)

    store = create_store(config.state_file)
    log = LogSink(store, echo_debug=args.debug)

    if args.logs:
        print(log.get_logs())
        return 0
    if args.clear_logs:
        log.clear()
        print("Logs cleared.")
        return 0

    if args.debug:
        print(f"Loaded configuration from: {args.config or Config.get_default_config_path()}")
        print(f"  State file: {config.state_file}")
        print(f"  Class groups: {len(config.catalog)}")

    app = QCoreApplication(sys.argv[:1])
    app.setApplicationName("ADE Planning")

    worker = AcquisitionWorker(TimetableService.from_config(config, store, log))
    exit_code = {"value": 1}

    def on_loaded(load):
        exit_code["value"] = print_load(load, args)
        app.quit()

    def on_error(message):
        print(f"Error: {message}")
        app.quit()

    worker.timetable_loaded.connect(on_loaded)
    worker.operation_error.connect(on_error)
    QTimer.singleShot(0, lambda: worker.submit_load(force=args.force_refresh))

    try:
        app.exec()
    finally:
        worker.shutdown(wait=False)
    return exit_code["value"]


if __name__ == "__main__":
    sys.exit(main())
