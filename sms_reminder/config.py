"""Configuration parser for the SMS reminder service."""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from loguru import logger

from .errors import ConfigError
from .messaging import DEFAULT_TWILIO_BASE_URL
from .log import normalize_level
from .scheduler import DEFAULT_POLL_INTERVAL


VALID_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class SchedulerConfig:
    """Settings for the dispatch scheduler."""
    poll_interval: float = DEFAULT_POLL_INTERVAL  # seconds
    run_on_start: bool = True

    @classmethod
    def from_dict(cls, settings: dict) -> "SchedulerConfig":
        poll_interval = settings.get("poll_interval", DEFAULT_POLL_INTERVAL)
        if isinstance(poll_interval, bool) or not isinstance(poll_interval, (int, float)):
            raise ConfigError(f"[scheduler] poll_interval must be a number, got {poll_interval!r}")
        if poll_interval <= 0:
            raise ConfigError(f"[scheduler] poll_interval must be positive, got {poll_interval}")
        run_on_start = settings.get("run_on_start", True)
        if not isinstance(run_on_start, bool):
            raise ConfigError(f"[scheduler] run_on_start must be true or false, got {run_on_start!r}")
        return cls(poll_interval=float(poll_interval), run_on_start=run_on_start)


@dataclass
class StorageConfig:
    """Where reminders are persisted."""
    path: Path = Path("reminders.json")

    @classmethod
    def from_dict(cls, settings: dict, config_dir: Path) -> "StorageConfig":
        path = Path(settings.get("path", "reminders.json")).expanduser()
        if not path.is_absolute():
            path = config_dir / path
        return cls(path=path)


@dataclass
class TwilioConfig:
    """Credentials for the Twilio messaging gateway."""
    account_sid: Optional[str] = None
    auth_token: Optional[str] = None
    from_number: Optional[str] = None
    base_url: str = DEFAULT_TWILIO_BASE_URL
    timeout: float = 10.0  # seconds

    ENV_OVERRIDES = {
        "account_sid": "TWILIO_ACCOUNT_SID",
        "auth_token": "TWILIO_AUTH_TOKEN",
        "from_number": "TWILIO_PHONE_NUMBER",
    }

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    @classmethod
    def from_dict(cls, settings: dict, environ: Optional[Mapping[str, str]] = None) -> "TwilioConfig":
        """Create a TwilioConfig, letting environment variables override file values."""
        environ = os.environ if environ is None else environ
        values = {key: settings.get(key) for key in cls.ENV_OVERRIDES}
        for key, env_name in cls.ENV_OVERRIDES.items():
            if environ.get(env_name):
                values[key] = environ[env_name]
        return cls(
            base_url=settings.get("base_url", DEFAULT_TWILIO_BASE_URL),
            timeout=float(settings.get("timeout", 10.0)),
            **values,
        )


@dataclass
class LoggingConfig:
    """Log levels and optional log file."""
    level: str = "DEBUG"  # file sink level
    console_level: str = "INFO"
    file: Optional[Path] = None

    @classmethod
    def from_dict(cls, settings: dict, config_dir: Path) -> "LoggingConfig":
        level = normalize_level(settings.get("level", "DEBUG"))
        console_level = normalize_level(settings.get("console_level", "INFO"))
        for name, value in (("level", level), ("console_level", console_level)):
            if value not in VALID_LOG_LEVELS:
                raise ConfigError(f"[logging] {name} is not a valid log level: {value}")

        log_file = settings.get("file")
        if log_file:
            log_file = Path(log_file).expanduser()
            if not log_file.is_absolute():
                log_file = config_dir / log_file
        return cls(level=level, console_level=console_level, file=log_file or None)


@dataclass
class AppConfig:
    """Complete service configuration."""
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    twilio: TwilioConfig = field(default_factory=TwilioConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def parse_config_data(
    config_data: dict,
    config_dir: Path,
    environ: Optional[Mapping[str, str]] = None,
) -> AppConfig:
    """
    Parse configuration data into an AppConfig.

    Args:
        config_data: Raw parsed TOML data
        config_dir: Directory relative paths are resolved against
        environ: Environment used for credential overrides (defaults to os.environ)

    Returns:
        The parsed AppConfig; missing sections use defaults
    """
    sections = {}
    for name in ("scheduler", "storage", "twilio", "logging"):
        settings = config_data.get(name, {})
        if not isinstance(settings, dict):
            raise ConfigError(f"[{name}] must be a table")
        sections[name] = settings

    for name in config_data:
        if name not in sections:
            logger.warning(f"Ignoring unknown config section: [{name}]")

    return AppConfig(
        scheduler=SchedulerConfig.from_dict(sections["scheduler"]),
        storage=StorageConfig.from_dict(sections["storage"], config_dir),
        twilio=TwilioConfig.from_dict(sections["twilio"], environ),
        logging=LoggingConfig.from_dict(sections["logging"], config_dir),
    )


def load_config_file(config_file: Path) -> dict:
    """Load and parse a TOML configuration file."""
    if not config_file.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_file}\n"
            f"Please create a config file at {config_file}"
        )

    with open(config_file, "rb") as f:
        try:
            return tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {config_file}: {e}") from e


class ConfigManager:
    """Manages loading and parsing of the service configuration."""

    DEFAULT_CONFIG_DIR = Path.home() / ".config" / "sms-reminder"
    CONFIG_FILE = "config.toml"

    def __init__(self, config_dir: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None):
        self.config_dir = Path(config_dir) if config_dir else self.DEFAULT_CONFIG_DIR
        self.config_file = self.config_dir / self.CONFIG_FILE
        self.environ = environ
        self.config: AppConfig = AppConfig(
            storage=StorageConfig.from_dict({}, self.config_dir),
        )

    def ensure_config_dir(self) -> None:
        """Create the config directory if it doesn't exist."""
        self.config_dir.mkdir(parents=True, exist_ok=True)

    def load_config(self) -> AppConfig:
        """Load and parse the configuration file."""
        config_data = load_config_file(self.config_file)
        self.config = parse_config_data(config_data, self.config_dir, self.environ)
        return self.config

    def load_from_data(self, config_data: dict) -> AppConfig:
        """Load configuration from already-parsed data."""
        self.config = parse_config_data(config_data, self.config_dir, self.environ)
        return self.config

    def create_example_config(self) -> None:
        """Create an example configuration file."""
        self.ensure_config_dir()

        example_config = '''# SMS Reminder Configuration
# Relative paths are resolved against this directory.

[scheduler]
poll_interval = 60      # Seconds between checks for due reminders
run_on_start = true     # Check immediately at startup instead of after one interval

[storage]
path = "reminders.json"

# Credentials may also come from TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN
# and TWILIO_PHONE_NUMBER, which take precedence over the values here.
[twilio]
account_sid = ""
auth_token = ""
from_number = ""        # E.164 sender number, e.g. "+15550001111"
timeout = 10

[logging]
console_level = "INFO"
level = "DEBUG"         # Level for the log file
# file = "sms-reminder.log"
'''

        with open(self.config_file, "w") as f:
            f.write(example_config)

        logger.info(f"Created example config at: {self.config_file}")
