import os
from typing import Mapping, Optional, Tuple

import yaml
from apscheduler.triggers.cron import CronTrigger
from pydantic import BaseModel, ConfigDict

from .logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_FILE = "config.yaml"

REQUIRED_VARS = (
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_S3_REGION",
    "AWS_S3_ENDPOINT",
    "AWS_S3_BUCKET",
)

TRUE_VALUES = {"true", "1", "yes", "on"}
FALSE_VALUES = {"false", "0", "no", "off", ""}


class ConfigError(Exception):
    """Raised when the configuration is missing or malformed."""


class S3Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_key_id: str
    secret_access_key: str
    region: str
    endpoint: str
    bucket: str
    connect_timeout: float = 10
    read_timeout: float = 300


class TelegramSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: Optional[str] = None
    chat_ids: Tuple[str, ...] = ()
    message_prefix: str = "[Backup Database]"
    timeout: float = 10

    @property
    def is_enabled(self) -> bool:
        return bool(self.token)


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    s3: S3Settings
    telegram: TelegramSettings = TelegramSettings()
    databases: Tuple[str, ...] = ()
    run_on_startup: bool = False
    cron: Optional[str] = None
    timezone: str = "UTC"
    abort_on_unknown_engine: bool = True
    tmp_dir: Optional[str] = None
    dump_timeout: float = 3600
    compress_timeout: float = 1800
    metrics_port: Optional[int] = None


def _split_list(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _parse_bool(name: str, value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ConfigError(f"Environment variable {name} must be a boolean, got {value!r}")


def _parse_number(name: str, value: Optional[str], default, cast=float):
    if value is None or value.strip() == "":
        return default
    try:
        number = cast(value)
    except ValueError:
        raise ConfigError(f"Environment variable {name} must be a number, got {value!r}")
    if number <= 0:
        raise ConfigError(f"Environment variable {name} must be positive, got {value!r}")
    return number


def load_config_file(path: str) -> dict:
    """Reads optional defaults from a YAML file keyed by environment variable names."""
    if not os.path.exists(path):
        return {}

    with open(path, "r") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Error parsing {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping of setting names to values")

    logger.info(f"Loaded configuration defaults from {path}.")
    values = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, list):
            value = ",".join(str(item) for item in value)
        elif isinstance(value, bool):
            value = "true" if value else "false"
        values[str(key).upper()] = str(value)
    return values


def load_config(environ: Optional[Mapping[str, str]] = None, config_file: Optional[str] = None) -> Settings:
    """
    Builds the immutable settings for a process.
    Values from the YAML file are overridden by the environment.
    Raises ConfigError naming the first missing or malformed setting.
    """
    environ = os.environ if environ is None else environ
    config_file = config_file or environ.get("BACKUP_CONFIG_FILE", DEFAULT_CONFIG_FILE)

    values = load_config_file(config_file)
    values.update({key: value for key, value in environ.items() if value is not None})

    for key in REQUIRED_VARS:
        if not values.get(key):
            raise ConfigError(f"Environment variable {key} is required")

    cron = values.get("CRON") or None
    timezone = values.get("TZ") or "UTC"
    if cron:
        try:
            CronTrigger.from_crontab(cron, timezone=timezone)
        except (ValueError, KeyError) as e:
            raise ConfigError(f"Invalid CRON expression {cron!r}: {e}")

    tmp_dir = values.get("BACKUP_TMP_DIR") or None
    if tmp_dir and not os.path.isdir(tmp_dir):
        raise ConfigError(f"BACKUP_TMP_DIR {tmp_dir!r} does not exist or is not a directory")

    s3 = S3Settings(
        access_key_id=values["AWS_ACCESS_KEY_ID"],
        secret_access_key=values["AWS_SECRET_ACCESS_KEY"],
        region=values["AWS_S3_REGION"],
        endpoint=values["AWS_S3_ENDPOINT"],
        bucket=values["AWS_S3_BUCKET"],
        connect_timeout=_parse_number("S3_CONNECT_TIMEOUT_SECONDS", values.get("S3_CONNECT_TIMEOUT_SECONDS"), 10),
        read_timeout=_parse_number("S3_READ_TIMEOUT_SECONDS", values.get("S3_READ_TIMEOUT_SECONDS"), 300),
    )

    telegram = TelegramSettings(
        token=values.get("TELEGRAM_TOKEN") or None,
        chat_ids=_split_list(values.get("TELEGRAM_CHAT_IDS")),
        message_prefix=values.get("TELEGRAM_MESSAGE_PREFIX") or TelegramSettings().message_prefix,
        timeout=_parse_number("NOTIFY_TIMEOUT_SECONDS", values.get("NOTIFY_TIMEOUT_SECONDS"), 10),
    )

    return Settings(
        s3=s3,
        telegram=telegram,
        databases=_split_list(values.get("DATABASES")),
        run_on_startup=_parse_bool("RUN_ON_STARTUP", values.get("RUN_ON_STARTUP"), False),
        cron=cron,
        timezone=timezone,
        abort_on_unknown_engine=_parse_bool(
            "ABORT_ON_UNKNOWN_ENGINE", values.get("ABORT_ON_UNKNOWN_ENGINE"), True
        ),
        tmp_dir=tmp_dir,
        dump_timeout=_parse_number("DUMP_TIMEOUT_SECONDS", values.get("DUMP_TIMEOUT_SECONDS"), 3600),
        compress_timeout=_parse_number("COMPRESS_TIMEOUT_SECONDS", values.get("COMPRESS_TIMEOUT_SECONDS"), 1800),
        metrics_port=_parse_number("METRICS_PORT", values.get("METRICS_PORT"), None, cast=int),
    )
