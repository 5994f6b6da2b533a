"""
S3-compatible storage integration (Supabase Storage S3 endpoint, AWS S3,
MinIO, Backblaze B2, ...). Uses boto3 for all storage operations.
"""
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from sheetbridge.core.config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageConnectionError(StorageError):
    """Raised when storage connection fails."""
    pass


class StorageUploadError(StorageError):
    """Raised when file upload fails."""
    pass


def get_storage_client():
    """
    Get S3-compatible storage client.

    Returns:
        boto3 S3 client configured for the storage provider

    Raises:
        ValueError: If storage configuration is incomplete
    """
    if not all([settings.storage_access_key_id, settings.storage_secret_access_key, settings.storage_bucket_name]):
        raise ValueError(
            "Storage configuration is incomplete. Please set STORAGE_ACCESS_KEY_ID, "
            "STORAGE_SECRET_ACCESS_KEY, and STORAGE_BUCKET_NAME in your environment."
        )

    config = Config(
        signature_version='s3v4',
        retries={'max_attempts': 3, 'mode': 'standard'}
    )

    client_kwargs = {
        'service_name': 's3',
        'aws_access_key_id': settings.storage_access_key_id,
        'aws_secret_access_key': settings.storage_secret_access_key,
        'config': config,
    }

    # Add endpoint URL for non-AWS providers
    if settings.storage_endpoint_url:
        client_kwargs['endpoint_url'] = settings.storage_endpoint_url

    if settings.storage_region:
        client_kwargs['region_name'] = settings.storage_region

    try:
        return boto3.client(**client_kwargs)
    except Exception as e:
        logger.error(f"Failed to create storage client: {e}")
        raise StorageConnectionError(f"Failed to connect to storage: {str(e)}")


def _object_exists(client, bucket: str, file_path: str) -> bool:
    try:
        client.head_object(Bucket=bucket, Key=file_path)
        return True
    except ClientError as e:
        error_code = e.response.get('Error', {}).get('Code', 'Unknown')
        if error_code in ('404', 'NoSuchKey', 'NotFound'):
            return False
        raise


def upload_file(
    file_content: bytes,
    file_path: str,
    content_type: str,
    bucket: Optional[str] = None,
    overwrite: bool = False,
) -> Dict[str, Any]:
    """
    Upload bytes to ``bucket/file_path``.

    Existing objects are never replaced unless ``overwrite`` is set.

    Returns:
        Dictionary with upload details:
        - file_id: The object's ETag
        - file_path: Key in the bucket
        - size: File size in bytes

    Raises:
        StorageUploadError: If upload fails or the path is already taken
    """
    bucket = bucket or settings.storage_bucket_name
    try:
        client = get_storage_client()

        if not overwrite and _object_exists(client, bucket, file_path):
            raise StorageUploadError(f"Upload failed: {file_path} already exists")

        response = client.put_object(
            Bucket=bucket,
            Key=file_path,
            Body=file_content,
            ContentType=content_type,
            CacheControl="max-age=3600",
        )

        return {
            "file_id": response.get('ETag', '').strip('"'),
            "file_path": file_path,
            "size": len(file_content),
        }

    except StorageUploadError:
        raise
    except ClientError as e:
        error_code = e.response.get('Error', {}).get('Code', 'Unknown')
        logger.error(f"Storage upload failed: {error_code} - {str(e)}")
        raise StorageUploadError(f"Upload failed: {str(e)}")
    except (BotoCoreError, StorageConnectionError, ValueError) as e:
        logger.error(f"Unexpected error during upload: {str(e)}")
        raise StorageUploadError(f"Upload failed: {str(e)}")


def get_public_url(file_path: str, bucket: Optional[str] = None) -> str:
    """
    Build the public URL of a stored object.

    Uses STORAGE_PUBLIC_BASE_URL when configured, otherwise the
    path-style URL on the storage endpoint.
    """
    bucket = bucket or settings.storage_bucket_name
    key = quote(file_path)
    if settings.storage_public_base_url:
        return f"{settings.storage_public_base_url.rstrip('/')}/{bucket}/{key}"
    if settings.storage_endpoint_url:
        return f"{settings.storage_endpoint_url.rstrip('/')}/{bucket}/{key}"
    return f"https://{bucket}.s3.{settings.storage_region}.amazonaws.com/{key}"
