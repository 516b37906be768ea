from __future__ import annotations

import asyncio
import io
import logging
import re
import zipfile
from collections.abc import Sequence

from pageplus.models.context import ContextItem
from pageplus.models.messages import ConversationMessage
from pageplus.models.tools import PageImage
from pageplus.page.errors import PageBridgeError
from pageplus.page.markers import ZipDownloadMarker
from pageplus.protocols.page import PageBridge
from pageplus.protocols.providers import ChunkSink
from pageplus.tools.leases import DEFAULT_LEASE_S, LeaseManager

logger = logging.getLogger(__name__)

ZIP_MIME_TYPE = "application/zip"
NO_IMAGES_FOUND = "No images found on this page.\n"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9]")
_EXTENSIONS = (("png", "png"), ("gif", "gif"), ("webp", "webp"), ("svg", "svg"))


def extension_for(mime_type: str) -> str:
    for needle, extension in _EXTENSIONS:
        if needle in mime_type:
            return extension
    return "jpg"


def image_filename(alt: str, index: int, mime_type: str) -> str:
    return f"{_UNSAFE_FILENAME_CHARS.sub('_', alt)}_{index + 1}.{extension_for(mime_type)}"


class GetPageImagesTool:
    def __init__(
        self,
        page: PageBridge | None,
        leases: LeaseManager | None = None,
        *,
        timeout_s: float = 10.0,
        lease_s: float = DEFAULT_LEASE_S,
    ) -> None:
        self._page = page
        self._timeout_s = timeout_s
        if leases is None and page is not None:
            leases = LeaseManager(page.revoke_download_url, duration_s=lease_s)
        self._leases = leases

    async def _fetch_into(
        self,
        page: PageBridge,
        archive: zipfile.ZipFile,
        images: Sequence[PageImage],
        on_chunk: ChunkSink,
    ) -> int:
        added = 0
        for index, image in enumerate(images):
            try:
                payload, mime_type = await page.fetch_blob(image.blob_url)
                archive.writestr(image_filename(image.alt, index, mime_type), payload)
                added += 1
            except Exception as exc:
                logger.warning("failed to add image %d to archive: %s", index + 1, exc)
                on_chunk(f"⚠️ Failed to add image {index + 1}\n")
            finally:
                try:
                    page.revoke_blob(image.blob_url)
                except Exception:
                    logger.warning("failed to revoke blob %s", image.blob_url, exc_info=True)
        return added

    async def __call__(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        on_chunk: ChunkSink,
        history: Sequence[ConversationMessage] | None = None,
    ) -> None:
        if self._page is None or self._leases is None:
            on_chunk("\n❌ Error extracting images: the page is not reachable.\n")
            return
        try:
            response = await asyncio.wait_for(self._page.get_page_images(), timeout=self._timeout_s)
        except TimeoutError:
            on_chunk("\n❌ Error extracting images: Content script response timeout\n")
            return
        except PageBridgeError as exc:
            on_chunk(f"\n❌ Error extracting images: {exc}\n")
            return

        if not response.success:
            on_chunk(f"❌ Error: {response.error or 'Failed to extract images'}\n")
            return
        if response.image_count == 0 or not response.images:
            on_chunk(NO_IMAGES_FOUND)
            return

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=6) as archive:
            added = await self._fetch_into(self._page, archive, response.images, on_chunk)

        omitted = len(response.images) - added
        if added == 0:
            on_chunk("❌ Error: none of the page images could be downloaded.\n")
            return
        if omitted:
            on_chunk(f"⚠️ {omitted} of {len(response.images)} images were omitted from the archive.\n")

        archive_bytes = buffer.getvalue()
        url = self._page.create_download_url(archive_bytes, ZIP_MIME_TYPE)
        lease = self._leases.grant(url)
        logger.info("packaged %d page images (%d bytes)", added, len(archive_bytes))
        on_chunk(
            ZipDownloadMarker(
                url=url,
                expires_at=lease.expires_at,
                image_count=added,
                size_bytes=len(archive_bytes),
            ).render()
        )


__all__ = ["GetPageImagesTool", "extension_for", "image_filename"]
