"""Client for the external image store."""

import logging

import httpx

from src.config import get_settings
from src.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)


class ImageStorageClient:
    """Deletes storage-backed photos when catalog entries are removed.

    Only URLs under the configured storage base are ours to delete; anything else
    is an external link and is left alone.
    """

    def __init__(self, base_url: str | None = None, timeout: float | None = None) -> None:
        self.settings = get_settings()
        self.base_url = base_url if base_url is not None else self.settings.image_storage_url
        self.timeout = timeout or self.settings.image_storage_timeout

    def is_managed(self, url: str) -> bool:
        return bool(self.base_url) and url.startswith(self.base_url)

    def delete_photos(self, urls: list[str] | None) -> None:
        """Delete every managed photo. A photo that is already gone counts as deleted."""
        managed = [url for url in urls or [] if self.is_managed(url)]
        if not managed:
            return

        with httpx.Client(timeout=self.timeout) as client:
            for url in managed:
                try:
                    response = client.delete(url)
                    if response.status_code != httpx.codes.NOT_FOUND:
                        response.raise_for_status()
                except httpx.HTTPError as e:
                    logger.error(f"Failed to delete photo {url}: {e}")
                    raise UpstreamUnavailable("images", f"Image store unavailable: {e}") from e
                logger.debug(f"Deleted photo {url}")


def get_image_storage() -> ImageStorageClient:
    """Get an image storage client instance."""
    return ImageStorageClient()
