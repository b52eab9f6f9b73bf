# app/utils/spaces.py
"""
S3-compatible object storage (DigitalOcean Spaces) for delivery photos.

Objects are written public-read and addressed through the CDN base URL, so
the URL stored on the order is durable and needs no signing.
"""
import logging
import os

import aioboto3

log = logging.getLogger(__name__)

DO_SPACES_KEY = os.getenv("DO_SPACES_KEY")
DO_SPACES_SECRET = os.getenv("DO_SPACES_SECRET")
DO_SPACES_REGION = os.getenv("DO_SPACES_REGION", "nyc3")
DO_SPACES_BUCKET = os.getenv("DO_SPACES_BUCKET")
DO_SPACES_ENDPOINT = os.getenv("DO_SPACES_ENDPOINT")  # e.g. https://nyc3.digitaloceanspaces.com
DO_SPACES_CDN_BASE = os.getenv("DO_SPACES_CDN_BASE")  # e.g. https://<bucket>.nyc3.cdn.digitaloceanspaces.com
DO_SPACES_PREFIX = os.getenv("DO_SPACES_PREFIX", "prod").strip("/")

_session = aioboto3.Session()


def spaces_configured() -> bool:
    return all([DO_SPACES_KEY, DO_SPACES_SECRET, DO_SPACES_BUCKET, DO_SPACES_ENDPOINT, DO_SPACES_CDN_BASE])


def object_key(key: str) -> str:
    """Bucket key under the environment prefix (prod/, staging/...)."""
    key = key.lstrip("/")
    return f"{DO_SPACES_PREFIX}/{key}" if DO_SPACES_PREFIX else key


def cdn_url(stored_key: str) -> str:
    return f"{DO_SPACES_CDN_BASE.rstrip('/')}/{stored_key.lstrip('/')}"


async def upload_public_file(key: str, body: bytes, content_type: str) -> str:
    """Store ``body`` public-read under ``key`` and return its CDN URL."""
    if not spaces_configured():
        raise RuntimeError("Spaces env vars not fully configured")

    stored_key = object_key(key)
    async with _session.client(
        "s3",
        region_name=DO_SPACES_REGION,
        endpoint_url=DO_SPACES_ENDPOINT,
        aws_access_key_id=DO_SPACES_KEY,
        aws_secret_access_key=DO_SPACES_SECRET,
    ) as s3:
        await s3.put_object(
            Bucket=DO_SPACES_BUCKET,
            Key=stored_key,
            Body=body,
            ContentType=content_type or "application/octet-stream",
            ACL="public-read",
        )
    log.info("spaces upload: key=%s bytes=%s", stored_key, len(body))
    return cdn_url(stored_key)
