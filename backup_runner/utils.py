from datetime import datetime
from typing import Optional
from urllib.parse import unquote, urlsplit

from .models import BackupTarget, DatabaseEngine

TIMESTAMP_FORMAT = "%Y-%m-%d_%H:%M:%S"


def parse_target(uri: str) -> BackupTarget:
    """
    Splits a connection string into its components.
    - scheme selects the engine (unsupported schemes map to ``unknown``).
    - path without the leading slash is the database name.
    - hostname, port and userinfo become the connection fields.
    Raises ValueError when the string has no scheme.
    """
    uri = uri.strip()
    parts = urlsplit(uri)
    if not parts.scheme:
        raise ValueError(f"Connection string has no scheme: {uri!r}")

    try:
        port: Optional[int] = parts.port
    except ValueError:
        # Multi-host strings (replica sets) have no single port.
        port = None

    return BackupTarget(
        engine=DatabaseEngine.from_scheme(parts.scheme),
        scheme=parts.scheme,
        database=parts.path[1:] if parts.path.startswith("/") else parts.path,
        host=parts.hostname or "",
        port=port,
        username=unquote(parts.username or ""),
        password=unquote(parts.password or ""),
        uri=uri,
    )


def format_timestamp(moment: datetime) -> str:
    return moment.strftime(TIMESTAMP_FORMAT)


def build_artifact_filename(engine: str, timestamp: str, database: str, host: str) -> str:
    return f"backup-{engine}-{timestamp}-{database}-{host}.tar.gz"
