"""Async Azure Blob Storage client wrapper."""

from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.identity.aio import DefaultAzureCredential
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import BlobServiceClient
from tenacity import retry, stop_after_attempt, wait_exponential

from ..config import get_settings
from ..logging import get_logger

logger = get_logger(__name__)


def create_blob_service_client(
    connection_string: str | None = None,
    use_managed_identity: bool = False,
    account_url: str | None = None,
) -> BlobServiceClient:
    """Create an async BlobServiceClient.

    Args:
        connection_string: Azure Storage connection string.
        use_managed_identity: If True, use DefaultAzureCredential.
        account_url: Storage account URL (required if using managed identity).

    Returns:
        BlobServiceClient instance.
    """
    if use_managed_identity:
        if not account_url:
            raise ValueError("account_url is required when using managed identity")
        return BlobServiceClient(account_url, credential=DefaultAzureCredential())

    if not connection_string:
        raise ValueError(
            "Azure Storage connection string not found. "
            "Set AZURE_STORAGE_CONNECTION_STRING."
        )
    return BlobServiceClient.from_connection_string(connection_string)


class BlobClient:
    """Wrapper for the Azure Blob Storage operations used to persist media."""

    def __init__(
        self,
        connection_string: str | None = None,
        use_managed_identity: bool = False,
        account_url: str | None = None,
    ):
        """Initialize the blob client.

        Args:
            connection_string: Azure Storage connection string.
            use_managed_identity: If True, use DefaultAzureCredential.
            account_url: Storage account URL (required if using managed identity).
        """
        self._connection_string = connection_string
        self._use_managed_identity = use_managed_identity
        self._account_url = account_url
        self._client: BlobServiceClient | None = None

    @property
    def client(self) -> BlobServiceClient:
        """Get or create the blob service client."""
        if self._client is None:
            self._client = create_blob_service_client(
                connection_string=self._connection_string,
                use_managed_identity=self._use_managed_identity,
                account_url=self._account_url,
            )
        return self._client

    async def ensure_container(self, container_name: str) -> None:
        """Ensure a container exists with public blob read access.

        Args:
            container_name: Name of the container.
        """
        container_client = self.client.get_container_client(container_name)
        try:
            await container_client.create_container(public_access="blob")
            logger.info("Created storage container", container=container_name)
        except ResourceExistsError:
            pass

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def upload_blob(
        self,
        container_name: str,
        blob_name: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        overwrite: bool = False,
    ) -> str:
        """Upload content to a blob.

        Args:
            container_name: Name of the container.
            blob_name: Name of the blob.
            content: Content to upload.
            content_type: MIME type of the content.
            overwrite: If True, overwrite an existing blob.

        Returns:
            The public blob URL.
        """
        blob_client = self.client.get_blob_client(container_name, blob_name)
        await blob_client.upload_blob(
            content,
            content_settings=ContentSettings(
                content_type=content_type,
                cache_control="public, max-age=3600",
            ),
            overwrite=overwrite,
        )
        return blob_client.url

    async def delete_blob(self, container_name: str, blob_name: str) -> None:
        """Delete a blob if it exists."""
        blob_client = self.client.get_blob_client(container_name, blob_name)
        try:
            await blob_client.delete_blob()
        except ResourceNotFoundError:
            pass

    def get_blob_url(self, container_name: str, blob_name: str) -> str:
        """Get the URL for a blob."""
        return self.client.get_blob_client(container_name, blob_name).url

    async def close(self) -> None:
        """Close the blob service client."""
        if self._client is not None:
            await self._client.close()
            self._client = None


# Global blob client instance
_blob_client: BlobClient | None = None


def get_blob_client() -> BlobClient:
    """Get the global blob client instance."""
    global _blob_client
    if _blob_client is None:
        storage = get_settings().storage
        _blob_client = BlobClient(
            connection_string=storage.connection_string or None,
            use_managed_identity=storage.use_managed_identity,
            account_url=storage.account_url or None,
        )
    return _blob_client
