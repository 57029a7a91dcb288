from enum import Enum
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict


class DatabaseEngine(str, Enum):
    POSTGRESQL = "postgresql"
    MONGODB = "mongodb"
    MYSQL = "mysql"
    UNKNOWN = "unknown"

    @classmethod
    def from_scheme(cls, scheme: str) -> "DatabaseEngine":
        try:
            engine = cls(scheme.lower())
        except ValueError:
            return cls.UNKNOWN
        return engine


class BackupTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    engine: DatabaseEngine
    scheme: str
    database: str
    host: str
    port: Optional[int] = None
    username: str = ""
    password: str = ""
    uri: str

    @property
    def display_uri(self) -> str:
        """The connection string with the password replaced, safe for logs."""
        parts = urlsplit(self.uri)
        if parts.password is None:
            return self.uri
        userinfo, _, hostinfo = parts.netloc.rpartition("@")
        user = userinfo.split(":", 1)[0]
        return urlunsplit(parts._replace(netloc=f"{user}:<REDACTED>@{hostinfo}"))


class BackupArtifact(BaseModel):
    model_config = ConfigDict(frozen=True)

    filename: str
    path: str

    @property
    def dump_path(self) -> str:
        return f"{self.path}.dump"


class CycleOutcome(BaseModel):
    target: BackupTarget
    succeeded: bool
    error: Optional[str] = None
    summary: Optional[str] = None
    size_bytes: Optional[int] = None
    duration_seconds: float = 0.0
