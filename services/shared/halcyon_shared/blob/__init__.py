"""Blob storage and generated media persistence."""

from .client import BlobClient, create_blob_service_client, get_blob_client
from .media import (
    URL_TYPE_PERMANENT,
    URL_TYPE_TEMPORARY,
    MediaKind,
    MediaStorage,
    PersistedMedia,
    build_blob_path,
    extension_for,
    is_temporary_url,
    sanitize_path_component,
    sanitize_url_for_logging,
    to_data_url,
)

__all__ = [
    "BlobClient",
    "MediaKind",
    "MediaStorage",
    "PersistedMedia",
    "URL_TYPE_PERMANENT",
    "URL_TYPE_TEMPORARY",
    "build_blob_path",
    "create_blob_service_client",
    "extension_for",
    "get_blob_client",
    "is_temporary_url",
    "sanitize_path_component",
    "sanitize_url_for_logging",
    "to_data_url",
]
