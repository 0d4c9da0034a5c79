import re
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from videomaker.errors import UpstreamError
from videomaker.settings import settings

_client = None


def is_configured() -> bool:
    return bool(settings.S3_BUCKET)


def s3_client():
    """Created on first use so the app boots without AWS settings."""
    global _client
    if _client is None:
        # Force v4 signing + regional endpoint to avoid redirects/CORS issues
        cfg = Config(signature_version="s3v4", region_name=settings.AWS_REGION)
        kwargs = {"region_name": settings.AWS_REGION, "config": cfg}
        if settings.AWS_REGION:
            kwargs["endpoint_url"] = f"https://s3.{settings.AWS_REGION}.amazonaws.com"
        _client = boto3.client("s3", **kwargs)
    return _client


def output_key(filename: str) -> str:
    safe = re.sub(r"[^A-Za-z0-9._-]+", "_", filename)
    return f"{settings.S3_OUTPUT_PREFIX}{safe}"


def put_object_bytes(key: str, content_type: str, data: bytes) -> None:
    try:
        s3_client().put_object(Bucket=settings.S3_BUCKET, Key=key, Body=data, ContentType=content_type)
    except (ClientError, BotoCoreError) as e:
        raise UpstreamError(f"S3 upload failed: {e}", service="s3")


def presign_download(
    key: str,
    ttl: int = 3600,
    *,
    as_attachment: bool = False,
    download_name: Optional[str] = None,
) -> str:
    """
    Generate a presigned GET URL for downloading/streaming an object.
    If as_attachment=True, add Content-Disposition: attachment to force download.
    """
    params = {"Bucket": settings.S3_BUCKET, "Key": key}
    if as_attachment:
        if not download_name:
            download_name = key.split("/")[-1] or "download"
        params["ResponseContentDisposition"] = f'attachment; filename="{download_name}"'
    return s3_client().generate_presigned_url(
        ClientMethod="get_object",
        Params=params,
        ExpiresIn=ttl,
    )


def store_output(filename: str, content_type: str, data: bytes) -> dict:
    key = output_key(filename)
    put_object_bytes(key, content_type, data)
    name = key.split("/")[-1]
    return {"s3_key": key, "download_url": presign_download(key, as_attachment=True, download_name=name)}
