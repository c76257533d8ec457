"""Upload of finished recordings to S3-compatible storage.

Objects are keyed by the day the recording was produced:
``<prefix>/YYYY/MM/DD/<file name>``.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError


def build_object_key(filename: str, recorded_at: datetime, prefix: str = "") -> str:
    prefix_parts = [part for part in prefix.replace("\\", "/").split("/") if part]
    return "/".join(prefix_parts + [recorded_at.strftime("%Y/%m/%d"), Path(filename).name])


@dataclass
class S3Config:
    bucket: str
    endpoint_url: str
    access_key: str
    secret_key: str
    region: Optional[str] = None
    prefix: str = ""
    path_style: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "S3Config":
        missing = [name for name in ("bucket", "endpoint_url", "access_key", "secret_key") if not data.get(name)]
        if missing:
            raise ValueError(f"Missing required S3 configuration fields: {', '.join(missing)}")
        return cls(
            bucket=str(data["bucket"]),
            endpoint_url=str(data["endpoint_url"]),
            access_key=str(data["access_key"]),
            secret_key=str(data["secret_key"]),
            region=str(data["region"]) if data.get("region") else None,
            prefix=str(data.get("prefix", "")),
            path_style=bool(data.get("path_style", True)),
        )


class S3Uploader:
    """:class:`~gesture_recorder.core.upload_queue.Uploader` backed by boto3."""

    def __init__(self, config: S3Config) -> None:
        self._config = config
        self._client = boto3.client(
            "s3",
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key,
            aws_secret_access_key=config.secret_key,
            region_name=config.region,
            config=Config(s3={"addressing_style": "path" if config.path_style else "virtual"}),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "S3Uploader":
        return cls(S3Config.from_dict(data))

    @property
    def bucket(self) -> str:
        return self._config.bucket

    def upload_file(self, local_path: str, recorded_at: datetime) -> str:
        """Upload one recording; returns the object key. boto3 errors propagate."""
        key = build_object_key(local_path, recorded_at, self._config.prefix)
        self._client.upload_file(local_path, self._config.bucket, key)
        return key

    def check_bucket(self) -> bool:
        try:
            self._client.head_bucket(Bucket=self._config.bucket)
        except (BotoCoreError, ClientError):
            return False
        return True
