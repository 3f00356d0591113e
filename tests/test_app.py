"""Tests for the command line interface."""

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from sms_reminder.app import ReminderApp, main
from sms_reminder.messaging import LoggingSmsGateway, TwilioSmsGateway
from sms_reminder.models import ReminderStatus


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    for name in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER"):
        monkeypatch.delenv(name, raising=False)
    directory = tmp_path / "conf"
    assert main(["--config-dir", str(directory), "init"]) == 0
    return directory


def cli(config_dir, *args):
    return main(["--config-dir", str(config_dir), *args])


class TestCommands:
    """Tests for the sms-reminder subcommands."""

    def test_init_refuses_to_overwrite(self, config_dir, capsys):
        assert cli(config_dir, "init") == 1
        assert "already exists" in capsys.readouterr().err

    def test_missing_config(self, tmp_path, capsys):
        assert main(["--config-dir", str(tmp_path), "list"]) == 1
        assert "sms-reminder init" in capsys.readouterr().err

    def test_add_and_list(self, config_dir, capsys):
        assert cli(config_dir, "add", "--title", "Dentist", "--phone", "+15551234567",
                   "--at", "2030-01-02T09:30", "--description", "Bring card") == 0
        assert "Added reminder" in capsys.readouterr().out

        assert cli(config_dir, "list") == 0
        out = capsys.readouterr().out
        assert "Dentist" in out
        assert "2030-01-02 09:30:00" in out
        assert "pending" in out

    def test_list_empty(self, config_dir, capsys):
        assert cli(config_dir, "list") == 0
        assert "No reminders" in capsys.readouterr().out

    def test_add_invalid_phone(self, config_dir, capsys):
        assert cli(config_dir, "add", "--title", "x", "--phone", "123", "--at", "2030-01-02T09:30") == 1
        assert "Phone number" in capsys.readouterr().err

    def test_complete_and_undo(self, config_dir, capsys):
        cli(config_dir, "add", "--title", "Dentist", "--phone", "+15551234567", "--at", "2030-01-02T09:30")
        reminder_id = capsys.readouterr().out.split()[2]

        assert cli(config_dir, "complete", reminder_id) == 0
        assert "completed" in capsys.readouterr().out
        assert cli(config_dir, "list") == 0
        assert "(completed)" in capsys.readouterr().out

        assert cli(config_dir, "complete", reminder_id, "--undo") == 0
        assert "active" in capsys.readouterr().out

    def test_complete_unknown_id(self, config_dir, capsys):
        assert cli(config_dir, "complete", "nope") == 1
        assert "Reminder not found" in capsys.readouterr().err

    def test_edit_changes_content_only(self, config_dir, capsys):
        """Test that edit updates fields and leaves delivery status alone."""
        cli(config_dir, "add", "--title", "Dentist", "--phone", "+15551234567", "--at", "2030-01-02T09:30")
        reminder_id = capsys.readouterr().out.split()[2]
        app = ReminderApp(config_dir)
        app.initialize(configure_logging=False)
        app.store.mark_failed(reminder_id)

        assert cli(config_dir, "edit", reminder_id, "--title", "Orthodontist", "--at", "2030-01-03T10:00") == 0
        assert f"Updated reminder {reminder_id}" in capsys.readouterr().out

        reminder = app.store.get(reminder_id)
        assert reminder.title == "Orthodontist"
        assert reminder.scheduled_for == datetime(2030, 1, 3, 10, 0)
        assert reminder.phone_number == "+15551234567"
        assert reminder.status is ReminderStatus.FAILED

    def test_edit_invalid_phone(self, config_dir, capsys):
        cli(config_dir, "add", "--title", "Dentist", "--phone", "+15551234567", "--at", "2030-01-02T09:30")
        reminder_id = capsys.readouterr().out.split()[2]

        assert cli(config_dir, "edit", reminder_id, "--phone", "123") == 1
        assert "Phone number" in capsys.readouterr().err

    def test_delete(self, config_dir, capsys):
        cli(config_dir, "add", "--title", "Dentist", "--phone", "+15551234567", "--at", "2030-01-02T09:30")
        reminder_id = capsys.readouterr().out.split()[2]

        assert cli(config_dir, "delete", reminder_id) == 0
        assert f"Deleted reminder {reminder_id}" in capsys.readouterr().out
        assert cli(config_dir, "list") == 0
        assert "No reminders" in capsys.readouterr().out

    def test_delete_unknown_id(self, config_dir, capsys):
        assert cli(config_dir, "delete", "nope") == 1
        assert "Reminder not found" in capsys.readouterr().err

    def test_list_filter(self, config_dir, capsys):
        """Test the active, overdue and completed list filters."""
        past = (datetime.now() - timedelta(hours=1)).isoformat(timespec="seconds")
        future = (datetime.now() + timedelta(days=1)).isoformat(timespec="seconds")
        cli(config_dir, "add", "--title", "Overdue one", "--phone", "+15551234567", "--at", past)
        cli(config_dir, "add", "--title", "Upcoming one", "--phone", "+15551234567", "--at", future)
        cli(config_dir, "add", "--title", "Archived one", "--phone", "+15551234567", "--at", future)
        archived_id = capsys.readouterr().out.splitlines()[2].split()[2]
        cli(config_dir, "complete", archived_id)
        capsys.readouterr()

        for name, expected in (("active", "Upcoming one"), ("overdue", "Overdue one"), ("completed", "Archived one")):
            assert cli(config_dir, "list", "--filter", name) == 0
            lines = capsys.readouterr().out.splitlines()
            assert len(lines) == 1
            assert expected in lines[0]

    def test_run_once_dry_run(self, config_dir, capsys):
        """Test a single tick delivering a past-due reminder through the dry-run gateway."""
        past = (datetime.now() - timedelta(minutes=1)).isoformat(timespec="seconds")
        future = (datetime.now() + timedelta(days=1)).isoformat(timespec="seconds")
        cli(config_dir, "add", "--title", "Test login", "--phone", "+15551234567", "--at", past)
        cli(config_dir, "add", "--title", "Later", "--phone", "+15551234567", "--at", future)
        capsys.readouterr()

        with patch("sms_reminder.app.setup_logging") as setup_logging:
            assert cli(config_dir, "run", "--once", "--dry-run") == 0
        setup_logging.assert_called_once_with(console_level="INFO", log_file=None, file_level="DEBUG")
        assert "Examined 2, sent 1, failed 0" in capsys.readouterr().out

        app = ReminderApp(config_dir)
        app.initialize(configure_logging=False)
        statuses = {r.title: r.status for r in app.store.list_reminders()}
        assert statuses == {"Test login": ReminderStatus.SENT, "Later": ReminderStatus.PENDING}


class TestReminderApp:
    """Tests for ReminderApp wiring."""

    def test_gateway_falls_back_without_credentials(self, config_dir):
        app = ReminderApp(config_dir)
        app.initialize(configure_logging=False)

        assert isinstance(app.gateway, LoggingSmsGateway)
        assert app.scheduler.poll_interval == 60.0

    def test_twilio_gateway_with_credentials(self, config_dir, monkeypatch):
        monkeypatch.setenv("TWILIO_ACCOUNT_SID", "AC1")
        monkeypatch.setenv("TWILIO_AUTH_TOKEN", "token")
        monkeypatch.setenv("TWILIO_PHONE_NUMBER", "+15550001111")
        app = ReminderApp(config_dir)
        app.initialize(configure_logging=False)

        assert isinstance(app.gateway, TwilioSmsGateway)
        app.shutdown()

    def test_dry_run_overrides_credentials(self, config_dir, monkeypatch):
        monkeypatch.setenv("TWILIO_ACCOUNT_SID", "AC1")
        monkeypatch.setenv("TWILIO_AUTH_TOKEN", "token")
        monkeypatch.setenv("TWILIO_PHONE_NUMBER", "+15550001111")
        app = ReminderApp(config_dir, dry_run=True)
        app.initialize(configure_logging=False)

        assert isinstance(app.gateway, LoggingSmsGateway)

    def test_run_until_stopped(self, config_dir):
        """Test that run() blocks until stop() and then shuts the scheduler down."""
        app = ReminderApp(config_dir, dry_run=True)
        app.initialize(configure_logging=False)

        with patch.object(app.scheduler, "wait", side_effect=lambda: app.stop()):
            app.run()

        assert not app.scheduler.is_running
