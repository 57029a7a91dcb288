import os
import subprocess
import tempfile
import threading
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import psutil

from .config import Settings
from .error_parser import parse_backup_error
from .logger import get_logger
from .metrics import (
    BACKUP_CYCLES_TOTAL, BACKUPS_TOTAL, BACKUP_DURATION_SECONDS, BACKUP_SIZE_BYTES,
    BACKUP_LAST_STATUS, BACKUP_LAST_SUCCESS_TIMESTAMP_SECONDS, DISK_SPACE_AVAILABLE_BYTES
)
from .models import BackupArtifact, BackupTarget, CycleOutcome, DatabaseEngine
from .notifier import TelegramNotifier
from .storage import StorageError, StorageProvider
from .utils import build_artifact_filename, format_timestamp, parse_target

logger = get_logger(__name__)

# Telegram rejects texts over 4096 characters; leave room for the prefix.
MAX_NOTIFICATION_CHARS = 3500
TRUNCATION_MARKER = " [...] "


class BackupError(Exception):
    """Raised when dumping or compressing a database fails."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class DumpError(BackupError):
    pass


class CompressError(BackupError):
    pass


class UnrecognizedEngineError(Exception):
    """Raised for connection strings whose scheme has no dump command."""


def build_dump_command(target: BackupTarget, dump_path: str) -> Tuple[List[str], Dict[str, str]]:
    """
    Returns the dump argv for the target's engine and any extra environment
    variables it needs. Credentials never appear in the argv for mysql.
    """
    extra_env: Dict[str, str] = {}

    if target.engine == DatabaseEngine.POSTGRESQL:
        cmd = ["pg_dump", f"--dbname={target.uri}", "--format=c", f"--file={dump_path}"]
    elif target.engine == DatabaseEngine.MONGODB:
        cmd = ["mongodump", f"--uri={target.uri}", f"--archive={dump_path}"]
    elif target.engine == DatabaseEngine.MYSQL:
        cmd = ["mysqldump", "--host", target.host]
        if target.port:
            cmd += ["--port", str(target.port)]
        if target.username:
            cmd += ["--user", target.username]
        cmd += [f"--result-file={dump_path}", target.database]
        if target.password:
            extra_env["MYSQL_PWD"] = target.password
    else:
        raise UnrecognizedEngineError(f"Unknown database type: {target.scheme}")

    return cmd, extra_env


def run_command(cmd: List[str], timeout: float, extra_env: Optional[Dict[str, str]] = None,
                error_cls=DumpError) -> str:
    """Runs an external process to completion and returns its stderr."""
    env = None
    if extra_env:
        env = os.environ.copy()
        env.update(extra_env)

    logger.debug(f"Executing {cmd[0]} with {len(cmd) - 1} arguments, timeout {timeout:g}s")
    try:
        result = subprocess.run(cmd, env=env, capture_output=True, text=True,
                                errors="replace", timeout=timeout)
    except subprocess.TimeoutExpired:
        raise error_cls(f"{cmd[0]} timed out after {timeout:g}s", stderr=f"{cmd[0]} timed out")
    except OSError as e:
        raise error_cls(f"Failed to start {cmd[0]}: {e}", stderr=str(e))

    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise error_cls(f"{cmd[0]} failed with exit code {result.returncode}: {stderr}", stderr=stderr)
    return result.stderr or ""


def truncate_message(message: str, limit: int = MAX_NOTIFICATION_CHARS) -> str:
    """Shortens a message for chat delivery, keeping its head and the end of the error."""
    if len(message) <= limit:
        return message
    head = limit // 4
    tail = limit - head - len(TRUNCATION_MARKER)
    return message[:head] + TRUNCATION_MARKER + message[-tail:]


def compress_dump(dump_path: str, archive_path: str, timeout: float) -> None:
    cmd = [
        "tar", "-czf", archive_path,
        "-C", os.path.dirname(dump_path), os.path.basename(dump_path),
    ]
    run_command(cmd, timeout, error_cls=CompressError)


class BackupRunner:
    """Runs backup cycles: dump, compress, upload and notify, one database at a time."""

    def __init__(self, settings: Settings, storage: StorageProvider, notifier: TelegramNotifier,
                 clock: Callable[[], datetime] = datetime.now):
        self.settings = settings
        self.storage = storage
        self.notifier = notifier
        self.clock = clock
        self._lock = threading.Lock()

    def run_cycle(self, targets: Optional[Sequence[str]] = None) -> None:
        targets = list(self.settings.databases if targets is None else targets)

        if not self._lock.acquire(blocking=False):
            logger.warning("A backup cycle is already running, skipping this trigger.")
            return
        try:
            self._run_cycle(targets)
        finally:
            self._lock.release()

    def _run_cycle(self, targets: List[str]) -> None:
        if not targets:
            logger.info("No databases defined.")
            return

        self._record_disk_space()

        total = len(targets)
        failures = 0
        for index, uri in enumerate(targets, start=1):
            try:
                outcome = self._process(uri, index, total)
            except UnrecognizedEngineError:
                logger.warning(f"Backup cycle stopped at [{index}/{total}], remaining databases were skipped.")
                BACKUP_CYCLES_TOTAL.labels(status="aborted").inc()
                return
            if not outcome.succeeded:
                failures += 1

        status = "completed" if failures == 0 else "completed_with_errors"
        logger.info(f"Backup cycle finished: {total - failures}/{total} databases backed up.")
        BACKUP_CYCLES_TOTAL.labels(status=status).inc()

    def _process(self, uri: str, index: int, total: int) -> CycleOutcome:
        try:
            target = parse_target(uri)
        except ValueError as e:
            target = BackupTarget(
                engine=DatabaseEngine.UNKNOWN, scheme="", database="", host="", uri=""
            )
            outcome = CycleOutcome(target=target, succeeded=False, error=str(e))
            self._report_failure(
                outcome, message=f"✗ [{index}/{total}] Invalid database connection string: {e}"
            )
            return outcome

        timestamp = format_timestamp(self.clock())
        filename = build_artifact_filename(target.scheme, timestamp, target.database, target.host)

        start_message = f"[{index}/{total}] {target.scheme}/{target.database} Backup in progress..."
        self.notifier.notify(start_message)
        logger.info(start_message)

        try:
            workspace = tempfile.TemporaryDirectory(prefix="backup-", dir=self.settings.tmp_dir)
        except OSError as e:
            outcome = CycleOutcome(
                target=target, succeeded=False, error=f"Could not create temporary directory: {e}"
            )
            self._report_failure(outcome)
            return outcome

        with workspace as workdir:
            artifact = BackupArtifact(filename=filename, path=os.path.join(workdir, filename))
            return self.backup_target(target, artifact)

    def backup_target(self, target: BackupTarget, artifact: BackupArtifact) -> CycleOutcome:
        """
        Dumps, compresses and uploads one database.
        Every failure after the engine check is returned as a failed outcome.
        """
        try:
            cmd, extra_env = build_dump_command(target, artifact.dump_path)
        except UnrecognizedEngineError as e:
            logger.error(str(e))
            if self.settings.abort_on_unknown_engine:
                raise
            outcome = CycleOutcome(target=target, succeeded=False, error=str(e))
            self._report_failure(outcome)
            return outcome

        logger.debug(f"Backing up {target.display_uri} to {artifact.path}")
        start_time = time.monotonic()
        try:
            run_command(cmd, self.settings.dump_timeout, extra_env=extra_env)
            compress_dump(artifact.dump_path, artifact.path, self.settings.compress_timeout)

            with open(artifact.path, "rb") as f:
                data = f.read()

            self.storage.upload(artifact.filename, data)
        except Exception as e:
            stderr = e.stderr if isinstance(e, BackupError) else str(e)
            outcome = CycleOutcome(
                target=target,
                succeeded=False,
                error=str(e),
                summary=parse_backup_error(stderr, target.engine.value),
                duration_seconds=time.monotonic() - start_time,
            )
            self._report_failure(outcome, exc_info=not isinstance(e, (BackupError, StorageError, OSError)))
            return outcome

        outcome = CycleOutcome(
            target=target,
            succeeded=True,
            size_bytes=len(data),
            duration_seconds=time.monotonic() - start_time,
        )
        self._report_success(outcome)
        return outcome

    def _report_success(self, outcome: CycleOutcome) -> None:
        target = outcome.target
        message = f"✓ Successfully uploaded db backup for database {target.scheme} {target.database} {target.host}."
        self.notifier.notify(message)
        logger.info(message)
        logger.debug(f"Uploaded {outcome.size_bytes} bytes in {outcome.duration_seconds:.2f}s")

        BACKUPS_TOTAL.labels(database_name=target.database, status="completed").inc()
        BACKUP_DURATION_SECONDS.labels(database_name=target.database).observe(outcome.duration_seconds)
        BACKUP_SIZE_BYTES.labels(database_name=target.database).set(outcome.size_bytes)
        BACKUP_LAST_STATUS.labels(database_name=target.database).set(1)
        BACKUP_LAST_SUCCESS_TIMESTAMP_SECONDS.labels(database_name=target.database).set(time.time())

    def _report_failure(self, outcome: CycleOutcome, exc_info: bool = False,
                        message: Optional[str] = None) -> None:
        target = outcome.target
        if message is None:
            message = (
                f"✗ An error occurred while processing the database {target.scheme} {target.database}, "
                f"host: {target.host}: {outcome.error}"
            )
        self.notifier.notify(truncate_message(message))
        logger.error(message, exc_info=exc_info)
        if outcome.summary:
            logger.info(f"Error summary for {target.scheme}/{target.database}: {outcome.summary}")

        BACKUPS_TOTAL.labels(database_name=target.database, status="failed").inc()
        BACKUP_LAST_STATUS.labels(database_name=target.database).set(0)

    def _record_disk_space(self) -> None:
        path = self.settings.tmp_dir or tempfile.gettempdir()
        try:
            free = psutil.disk_usage(path).free
        except OSError as e:
            logger.warning(f"Could not read free disk space for {path}: {e}")
            return
        DISK_SPACE_AVAILABLE_BYTES.set(free)
        logger.info(f"Free disk space for temporary files in {path}: {free / (1024 ** 3):.2f} GiB")
