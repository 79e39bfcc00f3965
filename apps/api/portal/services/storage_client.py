"""Helpers for the S3-compatible document store (presigned URLs only)."""

from __future__ import annotations

from urllib.parse import quote

import boto3
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import ClientError

from portal.core.config import settings


def _normalize_endpoint(endpoint_url: str | None) -> str | None:
    if endpoint_url:
        return endpoint_url.rstrip("/")
    return None


def _build_s3_config() -> Config | None:
    style = (settings.S3_URL_STYLE or "").strip().lower()
    if style in {"path", "virtual"}:
        return Config(s3={"addressing_style": style})
    return None


def get_s3_client() -> BaseClient:
    """Return a configured S3 client (supports S3-compatible endpoints)."""
    return boto3.client(
        "s3",
        region_name=settings.S3_REGION or None,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
        endpoint_url=_normalize_endpoint(settings.S3_ENDPOINT_URL),
        config=_build_s3_config(),
    )


def generate_upload_url(storage_key: str, content_type: str) -> str:
    """Presigned PUT URL the browser uploads the file bytes to."""
    return get_s3_client().generate_presigned_url(
        "put_object",
        Params={
            "Bucket": settings.S3_BUCKET,
            "Key": storage_key,
            "ContentType": content_type,
        },
        ExpiresIn=settings.STORAGE_URL_TTL_SECONDS,
    )


def generate_download_url(storage_key: str, filename: str | None = None) -> str:
    """Presigned GET URL; sets Content-Disposition when a filename is given."""
    params = {"Bucket": settings.S3_BUCKET, "Key": storage_key}
    if filename:
        params["ResponseContentDisposition"] = (
            f"attachment; filename*=UTF-8''{quote(filename)}"
        )
    return get_s3_client().generate_presigned_url(
        "get_object",
        Params=params,
        ExpiresIn=settings.STORAGE_URL_TTL_SECONDS,
    )


def object_exists(storage_key: str) -> bool:
    """True if the object has been written to the bucket."""
    try:
        get_s3_client().head_object(Bucket=settings.S3_BUCKET, Key=storage_key)
    except ClientError as exc:
        code = str(exc.response.get("Error", {}).get("Code", ""))
        if code in {"404", "NoSuchKey", "NotFound"}:
            return False
        raise
    return True
