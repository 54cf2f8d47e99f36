"""
Blob storage for uploaded import files.

Source files are written once at upload time and re-read on every mapping
save, validation and execution. Two backends share the same put/get contract:
a local directory for development and any S3-compatible bucket (AWS S3,
Backblaze B2, MinIO, ...) through boto3.
"""
import logging
import os
import re
import time
import uuid
from pathlib import Path
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from import_engine.core.config import settings

logger = logging.getLogger(__name__)

MAX_FILENAME_LENGTH = 255

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageConnectionError(StorageError):
    """Raised when storage connection fails."""
    pass


class StorageUploadError(StorageError):
    """Raised when file upload fails."""
    pass


class StorageDownloadError(StorageError):
    """Raised when file download fails."""
    pass


def sanitize_filename(file_name: Optional[str]) -> str:
    """
    Make an operator-supplied file name safe to store and display.

    Path components are dropped, every character outside [A-Za-z0-9._-] is
    replaced with an underscore and the result is capped at 255 characters.
    """
    base = re.split(r"[\\/]", file_name or "")[-1]
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", base)[:MAX_FILENAME_LENGTH]
    return cleaned or "upload"


def generate_storage_key(file_name: str, namespace: Optional[str] = None) -> str:
    """Build a unique key: <namespace>/<epoch ms>_<uuid4><original extension>."""
    extension = os.path.splitext(file_name or "")[1].lower()
    prefix = namespace if namespace is not None else settings.storage_namespace
    key = f"{int(time.time() * 1000)}_{uuid.uuid4()}{extension}"
    return f"{prefix}/{key}" if prefix else key


class LocalBlobStore:
    """Stores blobs as files below a root directory."""

    def __init__(self, root: str, namespace: Optional[str] = None):
        self.root = Path(root).resolve()
        self.namespace = namespace if namespace is not None else settings.storage_namespace

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise StorageDownloadError(f"Invalid storage key: {key}")
        return path

    def put(self, content: bytes, file_name: str) -> str:
        key = generate_storage_key(file_name, self.namespace)
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            logger.error("Local storage write failed for %s: %s", key, e)
            raise StorageUploadError(f"Upload failed: {e}")
        return key

    def get(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise StorageDownloadError(f"File not found: {key}")
        except OSError as e:
            logger.error("Local storage read failed for %s: %s", key, e)
            raise StorageDownloadError(f"Download failed: {e}")


def get_storage_client():
    """
    Get S3-compatible storage client.

    Works with Backblaze B2, AWS S3, MinIO, Wasabi and other S3-compatible
    providers.

    Returns:
        boto3 S3 client configured for the storage provider

    Raises:
        ValueError: If storage configuration is incomplete
        StorageConnectionError: If the client cannot be created
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

    # Add endpoint URL for non-AWS providers (B2, MinIO, etc.)
    if settings.storage_endpoint_url:
        client_kwargs['endpoint_url'] = settings.storage_endpoint_url

    if settings.storage_region:
        client_kwargs['region_name'] = settings.storage_region

    try:
        return boto3.client(**client_kwargs)
    except (BotoCoreError, ValueError) as e:
        logger.error(f"Failed to create storage client: {e}")
        raise StorageConnectionError(f"Failed to connect to storage: {str(e)}")


class S3BlobStore:
    """Stores blobs as objects in an S3-compatible bucket."""

    def __init__(self, client, bucket: str, namespace: Optional[str] = None):
        self.client = client
        self.bucket = bucket
        self.namespace = namespace if namespace is not None else settings.storage_namespace

    def put(self, content: bytes, file_name: str) -> str:
        key = generate_storage_key(file_name, self.namespace)
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=content)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            logger.error(f"Storage upload failed: {error_code} - {str(e)}")
            raise StorageUploadError(f"Upload failed: {str(e)}")
        except BotoCoreError as e:
            logger.error(f"Unexpected error during upload: {str(e)}")
            raise StorageUploadError(f"Upload failed: {str(e)}")
        return key

    def get(self, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response['Body'].read()
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            if error_code == 'NoSuchKey':
                raise StorageDownloadError(f"File not found: {key}")
            logger.error(f"Storage download failed: {error_code} - {str(e)}")
            raise StorageDownloadError(f"Download failed: {str(e)}")
        except BotoCoreError as e:
            logger.error(f"Unexpected error during download: {str(e)}")
            raise StorageDownloadError(f"Download failed: {str(e)}")


def get_blob_store():
    """Return the blob store selected by STORAGE_PROVIDER."""
    if settings.storage_provider == "local":
        return LocalBlobStore(settings.storage_local_root)
    return S3BlobStore(get_storage_client(), settings.storage_bucket_name)
