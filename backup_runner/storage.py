# backup_runner/storage.py
import abc

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import S3Settings
from .logger import get_logger

logger = get_logger(__name__)


class StorageError(Exception):
    """Raised when an artifact cannot be uploaded."""


class StorageProvider(abc.ABC):
    @abc.abstractmethod
    def upload(self, key: str, data: bytes) -> None:
        pass


class S3Storage(StorageProvider):
    def __init__(self, settings: S3Settings, s3_client=None):
        self.bucket = settings.bucket
        self.s3_client = s3_client or boto3.client(
            's3',
            region_name=settings.region,
            endpoint_url=settings.endpoint,
            aws_access_key_id=settings.access_key_id,
            aws_secret_access_key=settings.secret_access_key,
            config=Config(
                signature_version='s3v4',
                connect_timeout=settings.connect_timeout,
                read_timeout=settings.read_timeout,
            )
        )

    def upload(self, key: str, data: bytes) -> None:
        logger.debug(f"Uploading {len(data)} bytes to s3://{self.bucket}/{key}")
        try:
            self.s3_client.put_object(Bucket=self.bucket, Key=key, Body=data)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to upload {key} to bucket {self.bucket}: {e}") from e
