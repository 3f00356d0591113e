"""Command line entry point and service wiring for SMS reminders."""

import argparse
import signal
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from loguru import logger

from .config import AppConfig, ConfigManager
from .errors import ReminderError
from .log import setup_logging
from .messaging import LoggingSmsGateway, SmsGateway, TwilioSmsGateway
from .models import Reminder
from .scheduler import DispatchScheduler
from .storage import JsonFileReminderStore


class ReminderApp:
    """
    Main application class that coordinates the reminder service.

    Manages:
    - Configuration loading
    - Store and gateway construction
    - Scheduler lifecycle
    """

    def __init__(self, config_dir: Optional[Path] = None, dry_run: bool = False):
        """
        Initialize the ReminderApp.

        Args:
            config_dir: Optional custom config directory path
            dry_run: Log messages instead of sending them through Twilio
        """
        self.config_manager = ConfigManager(config_dir)
        self.dry_run = dry_run
        self.store: Optional[JsonFileReminderStore] = None
        self.gateway: Optional[SmsGateway] = None
        self.scheduler: Optional[DispatchScheduler] = None

    @property
    def config(self) -> AppConfig:
        return self.config_manager.config

    def initialize(self, configure_logging: bool = True) -> None:
        """Load configuration and build the store, gateway and scheduler."""
        config = self.config_manager.load_config()

        if configure_logging:
            setup_logging(
                console_level=config.logging.console_level,
                log_file=config.logging.file,
                file_level=config.logging.level,
            )

        self.store = JsonFileReminderStore(config.storage.path)
        self.gateway = self._build_gateway(config)
        self.scheduler = DispatchScheduler(
            self.store,
            self.gateway,
            poll_interval=config.scheduler.poll_interval,
            run_on_start=config.scheduler.run_on_start,
        )

    def _build_gateway(self, config: AppConfig) -> SmsGateway:
        if self.dry_run:
            logger.info("Dry run: messages will be logged, not sent")
            return LoggingSmsGateway()
        if not config.twilio.is_configured:
            logger.warning("Twilio credentials not configured; falling back to dry-run gateway")
            return LoggingSmsGateway()
        return TwilioSmsGateway(
            account_sid=config.twilio.account_sid,
            auth_token=config.twilio.auth_token,
            from_number=config.twilio.from_number,
            base_url=config.twilio.base_url,
            timeout=config.twilio.timeout,
        )

    def run(self) -> None:
        """Run the scheduler until stop() is called or a termination signal arrives."""
        self.scheduler.start()
        logger.info(
            f"Reminder scheduler started (checking every {self.config.scheduler.poll_interval:g} seconds)"
        )
        try:
            self.scheduler.wait()
        finally:
            self.shutdown()

    def run_once(self):
        return self.scheduler.run_tick()

    def stop(self, *_args) -> None:
        """Request shutdown; safe to use as a signal handler."""
        logger.info("Shutting down...")
        if self.scheduler is not None:
            self.scheduler.request_stop()

    def shutdown(self) -> None:
        if self.scheduler is not None:
            self.scheduler.stop()
        close = getattr(self.gateway, "close", None)
        if close is not None:
            close()


def _cmd_run(app: ReminderApp, args) -> int:
    if args.once:
        report = app.run_once()
        app.shutdown()
        if report is None or report.fetch_error is not None:
            return 1
        print(f"Examined {report.examined}, sent {report.sent}, failed {report.failed}")
        return 0

    signal.signal(signal.SIGINT, app.stop)
    signal.signal(signal.SIGTERM, app.stop)
    app.run()
    return 0


def _cmd_add(app: ReminderApp, args) -> int:
    reminder = Reminder.create(
        title=args.title,
        phone_number=args.phone,
        scheduled_for=args.at,
        description=args.description,
    )
    app.store.add(reminder)
    print(f"Added reminder {reminder.id} for {reminder.scheduled_for.isoformat(sep=' ')}")
    return 0


def _cmd_edit(app: ReminderApp, args) -> int:
    reminder = app.store.update(
        args.id,
        title=args.title,
        phone_number=args.phone,
        scheduled_for=args.at,
        description=args.description,
    )
    print(f"Updated reminder {reminder.id}")
    return 0


def _cmd_delete(app: ReminderApp, args) -> int:
    app.store.delete(args.id)
    print(f"Deleted reminder {args.id}")
    return 0


def _cmd_list(app: ReminderApp, args) -> int:
    reminders = sorted(app.store.list_reminders(), key=lambda r: r.scheduled_for)
    if args.filter:
        now = datetime.now()
        reminders = [r for r in reminders if r.category(now) == args.filter]
    if not reminders:
        print("No reminders")
        return 0
    for r in reminders:
        done = " (completed)" if r.completed else ""
        print(f"{r.id}  {r.scheduled_for.isoformat(sep=' ')}  {r.status.value:<7}  {r.phone_number}  {r.title}{done}")
    return 0


def _cmd_complete(app: ReminderApp, args) -> int:
    reminder = app.store.set_completed(args.id, not args.undo)
    state = "completed" if reminder.completed else "active"
    print(f"Reminder {reminder.id} marked {state}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sms-reminder",
        description="Schedule text message reminders and deliver them when due",
    )
    parser.add_argument(
        "--config-dir", "-c",
        type=Path,
        default=None,
        help=f"Configuration directory (default: {ConfigManager.DEFAULT_CONFIG_DIR})",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the dispatch scheduler")
    run.add_argument("--dry-run", action="store_true", help="Log messages instead of sending them")
    run.add_argument("--once", action="store_true", help="Run a single check and exit")

    add = sub.add_parser("add", help="Schedule a new reminder")
    add.add_argument("--title", "-t", required=True)
    add.add_argument("--phone", "-p", required=True, help="Destination number in E.164 format")
    add.add_argument("--at", "-a", required=True, help="Send time as ISO 8601, e.g. 2026-10-17T09:30")
    add.add_argument("--description", "-d", default=None)

    edit = sub.add_parser("edit", help="Change a reminder's content")
    edit.add_argument("id")
    edit.add_argument("--title", "-t", default=None)
    edit.add_argument("--phone", "-p", default=None, help="Destination number in E.164 format")
    edit.add_argument("--at", "-a", default=None, help="Send time as ISO 8601")
    edit.add_argument("--description", "-d", default=None, help="New description; pass '' to clear it")

    delete = sub.add_parser("delete", help="Delete a reminder")
    delete.add_argument("id")

    list_ = sub.add_parser("list", help="List reminders")
    list_.add_argument(
        "--filter", "-f",
        choices=["active", "overdue", "completed"],
        default=None,
        help="Only show active (upcoming), overdue or completed reminders",
    )

    complete = sub.add_parser("complete", help="Archive a reminder")
    complete.add_argument("id")
    complete.add_argument("--undo", action="store_true", help="Un-archive instead")

    sub.add_parser("init", help="Write an example configuration file")
    return parser


COMMANDS = {
    "run": _cmd_run,
    "add": _cmd_add,
    "edit": _cmd_edit,
    "delete": _cmd_delete,
    "list": _cmd_list,
    "complete": _cmd_complete,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    app = ReminderApp(config_dir=args.config_dir, dry_run=getattr(args, "dry_run", False))

    if args.command == "init":
        if app.config_manager.config_file.exists():
            print(f"Config already exists: {app.config_manager.config_file}", file=sys.stderr)
            return 1
        app.config_manager.create_example_config()
        print(f"Please edit {app.config_manager.config_file} and restart.")
        return 0

    try:
        app.initialize(configure_logging=args.command == "run")
        return COMMANDS[args.command](app, args)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Run 'sms-reminder init' to create an example configuration.", file=sys.stderr)
        return 1
    except (ReminderError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
