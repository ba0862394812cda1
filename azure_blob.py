# azure_blob.py
from typing import Optional

from azure.storage.blob import BlobServiceClient, ContentSettings

from config import Settings


def get_blob_service(settings: Settings) -> BlobServiceClient:
     if not settings.azure_storage_account or not settings.azure_storage_key:
          raise RuntimeError("AZURE_STORAGE_ACCOUNT and AZURE_STORAGE_KEY must be set for uploads")
     return BlobServiceClient.from_connection_string(
          f"DefaultEndpointsProtocol=https;"
          f"AccountName={settings.azure_storage_account};"
          f"AccountKey={settings.azure_storage_key};"
          f"EndpointSuffix=core.windows.net"
     )


def build_object_key(order_id: int, filename: str) -> str:
     return f"orders/{order_id}/{filename}"


def upload_bytes(
     settings: Settings,
     data: bytes,
     container: str,
     blob_name: str,
     content_type: Optional[str] = None,
) -> str:
     """
     Uploads raw bytes to Azure Blob Storage and returns the blob's URL
     """
     blob_service = get_blob_service(settings)
     container_client = blob_service.get_container_client(container)
     if not container_client.exists():
          container_client.create_container()
     blob_client = container_client.get_blob_client(blob_name)
     blob_client.upload_blob(
          data,
          overwrite=True,
          content_settings=ContentSettings(content_type=content_type) if content_type else None,
     )
     return f"https://{settings.azure_storage_account}.blob.core.windows.net/{container}/{blob_name}"
