from __future__ import annotations

from typing import Protocol, runtime_checkable

from pageplus.models.providers import FormFieldMapping
from pageplus.models.tools import (
    FormElementsResponse,
    FormFillResponse,
    PageImagesResponse,
    ScreenshotResponse,
)


@runtime_checkable
class PageBridge(Protocol):
    """Message round-trips to the page runtime (content script + browser APIs).

    Implementations raise ``PageBridgeError`` when the page cannot be
    reached; timeouts are applied by callers.
    """

    async def get_page_images(self) -> PageImagesResponse: ...

    async def get_form_elements(self) -> FormElementsResponse: ...

    async def fill_form(self, mapping: FormFieldMapping) -> FormFillResponse: ...

    async def capture_full_page(self) -> ScreenshotResponse: ...

    async def capture_area(self, bbox: dict[str, float]) -> ScreenshotResponse: ...

    async def fetch_blob(self, blob_url: str) -> tuple[bytes, str]:
        """Return ``(payload, mime_type)`` for a transient blob handle."""
        ...

    def revoke_blob(self, blob_url: str) -> None: ...

    def create_download_url(self, payload: bytes, mime_type: str) -> str: ...

    def revoke_download_url(self, url: str) -> None: ...


__all__ = ["PageBridge"]
