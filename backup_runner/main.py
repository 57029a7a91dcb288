import sys

from dotenv import load_dotenv
from prometheus_client import start_http_server

from .backup_manager import BackupRunner
from .config import ConfigError, load_config
from .logger import setup_logging, get_logger
from .notifier import TelegramNotifier
from .scheduler import run
from .storage import S3Storage

logger = get_logger(__name__)


def main() -> int:
    load_dotenv()
    setup_logging()

    try:
        settings = load_config()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    if settings.metrics_port:
        start_http_server(settings.metrics_port)
        logger.info(f"Prometheus metrics exposed on port {settings.metrics_port}")

    logger.info(f"{len(settings.databases)} database(s) configured for backup.")

    runner = BackupRunner(
        settings=settings,
        storage=S3Storage(settings.s3),
        notifier=TelegramNotifier(settings.telegram),
    )
    run(settings, runner)
    return 0


if __name__ == "__main__":
    sys.exit(main())
