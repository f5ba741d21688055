"""
Access Code Binder

Generates QR codes and binds them to what they open:
    - a table: `{base_url}/menu?table={table_id}`, one binding per table
    - the global menu: `{base_url}/menu`, labelled "Global Menu"
    - ad-hoc destinations (social links, feedback forms) by section label

Write order keeps partial failures harmless: render and store the image,
then write the AccessCode record, and only then point the Table at it.
A failed record write releases the image it just stored; the Table is
never touched unless the record exists.

Binds for the same table (or for the global menu) run one at a time in
this process. Across processes the store rejects a second code for the
same target with BindingConflict, and the loser's image is released.
The Table is updated only in its access_code_id column, so a concurrent
activation change is never overwritten.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import asyncio
import logging
from dataclasses import replace
from typing import Callable, Optional
from urllib.parse import urlencode

from tableside.entities import (
    GLOBAL_MENU_SECTION,
    AccessCode,
    AccessCodeKind,
    Table,
    utcnow,
)
from tableside.exceptions import ArtifactGenerationFailed, InvalidAccessCode, NotFound
from tableside.services.artifacts.base import ArtifactStorageError, BaseArtifactStorage
from tableside.services.artifacts.qr import render_qr_png
from tableside.store.base import BaseEntityStore

logger = logging.getLogger(__name__)

MENU_PATH = "/menu"


def build_table_url(base_url: str, table_id: str) -> str:
    """Guest entry point for one table."""
    return f"{base_url.rstrip('/')}{MENU_PATH}?{urlencode({'table': table_id})}"


def build_menu_url(base_url: str) -> str:
    """Guest entry point for the full restaurant menu."""
    return f"{base_url.rstrip('/')}{MENU_PATH}"


class AccessCodeBinder:
    """
    Creates, rebinds and deletes QR access codes.

    Attributes:
        store: Entity store for tables and access codes
        storage: Where rendered images are kept
        renderer: Turns a URL into image bytes (QR PNG by default)
    """

    def __init__(
        self,
        store: BaseEntityStore,
        storage: BaseArtifactStorage,
        renderer: Callable[[str], bytes] = render_qr_png,
    ):
        self.store = store
        self.storage = storage
        self.renderer = renderer
        self._bind_locks: dict[str, asyncio.Lock] = {}

    def _bind_lock(self, key: str) -> asyncio.Lock:
        return self._bind_locks.setdefault(key, asyncio.Lock())

    # =========================================================================
    # ARTIFACT HELPERS
    # =========================================================================

    async def _generate(self, url: str, name: str) -> str:
        """Render a QR for `url` and store it; returns the artifact reference."""
        try:
            image = await asyncio.to_thread(self.renderer, url)
        except Exception as e:
            logger.error(f"QR rendering failed for {url}: {e}")
            raise ArtifactGenerationFailed(f"Could not render QR code for {url}") from e

        try:
            return await self.storage.store(name, image, "image/png")
        except ArtifactStorageError as e:
            logger.error(f"Storing {name} failed: {e}")
            raise ArtifactGenerationFailed(f"Could not store QR code {name}") from e

    async def _discard(self, ref: str) -> None:
        """Release an artifact whose record never made it."""
        try:
            await self.storage.release(ref)
        except ArtifactStorageError as e:
            logger.error(f"Orphaned artifact {ref} could not be released: {e}")

    async def _save_with_artifact(self, code: AccessCode) -> AccessCode:
        try:
            return await self.store.save_access_code(code)
        except Exception:
            await self._discard(code.artifact_ref)
            raise

    async def _release_replaced(self, old_ref: Optional[str], new_ref: str) -> None:
        # The new binding is already committed at this point
        if old_ref and old_ref != new_ref:
            try:
                await self.storage.release(old_ref)
            except ArtifactStorageError as e:
                logger.warning(f"Replaced artifact {old_ref} not released: {e}")

    # =========================================================================
    # TABLE CODES
    # =========================================================================

    async def _existing_table_code(self, table: Table) -> Optional[AccessCode]:
        if table.access_code_id:
            code = await self.store.get_access_code(table.access_code_id)
            if code and code.kind == AccessCodeKind.TABLE and code.target_id == table.id:
                return code

        codes = await self.store.query_access_codes(
            kind=AccessCodeKind.TABLE, target_id=table.id
        )
        return codes[0] if codes else None

    async def bind_table(self, table_id: str, base_url: str) -> AccessCode:
        """
        Generate (or regenerate) the QR code for a table.

        Calling this again for the same table replaces the image and URL,
        e.g. after moving from a staging host to production, and keeps the
        same AccessCode record.

        Raises:
            NotFound: If the table does not exist
            ArtifactGenerationFailed: If the QR could not be rendered or stored
            BindingConflict: If another process bound the table first
        """
        async with self._bind_lock(f"table:{table_id}"):
            table = await self.store.get_table(table_id)
            if table is None:
                raise NotFound("Table", table_id)

            url = build_table_url(base_url, table.id)
            existing = await self._existing_table_code(table)
            artifact_ref = await self._generate(url, f"table-{table.number}.png")

            if existing:
                code = replace(existing, url=url, artifact_ref=artifact_ref, created_at=utcnow())
            else:
                code = AccessCode(
                    kind=AccessCodeKind.TABLE,
                    target_id=table.id,
                    section=f"Table {table.number}",
                    url=url,
                    artifact_ref=artifact_ref,
                )

            code = await self._save_with_artifact(code)
            await self.store.set_table_access_code(table.id, code.id)

            await self._release_replaced(existing.artifact_ref if existing else None, artifact_ref)

        logger.info(f"✅ Table {table.number} bound to QR {code.id} ({url})")
        return code

    # =========================================================================
    # GLOBAL CODES
    # =========================================================================

    async def find_global_menu(self) -> Optional[AccessCode]:
        """The canonical "Global Menu" code, newest first if several exist."""
        codes = await self.store.query_access_codes(
            kind=AccessCodeKind.GLOBAL, section=GLOBAL_MENU_SECTION
        )
        return codes[0] if codes else None

    async def bind_global_menu(self, base_url: str) -> AccessCode:
        """
        Generate (or regenerate) the restaurant-wide menu QR code.

        Raises:
            ArtifactGenerationFailed: If the QR could not be rendered or stored
            BindingConflict: If another process bound the global menu first
        """
        url = build_menu_url(base_url)

        async with self._bind_lock("global-menu"):
            existing = await self.find_global_menu()
            artifact_ref = await self._generate(url, "global-menu.png")

            if existing:
                code = replace(existing, url=url, artifact_ref=artifact_ref, created_at=utcnow())
            else:
                code = AccessCode(
                    kind=AccessCodeKind.GLOBAL,
                    section=GLOBAL_MENU_SECTION,
                    url=url,
                    artifact_ref=artifact_ref,
                )

            code = await self._save_with_artifact(code)
            await self._release_replaced(existing.artifact_ref if existing else None, artifact_ref)

        logger.info(f"✅ Global menu bound to QR {code.id} ({url})")
        return code

    async def create_ad_hoc_code(self, section: str, url: str) -> AccessCode:
        """
        Create a free-form QR code for any destination.

        Raises:
            InvalidAccessCode: Empty section or URL, or the reserved global menu label
            ArtifactGenerationFailed: If the QR could not be rendered or stored
        """
        section = (section or "").strip()
        url = (url or "").strip()

        if not section or not url:
            raise InvalidAccessCode("Section and URL are required")
        if section == GLOBAL_MENU_SECTION:
            raise InvalidAccessCode(
                f"'{GLOBAL_MENU_SECTION}' is reserved; bind the global menu instead"
            )

        slug = "-".join(section.lower().split())
        artifact_ref = await self._generate(url, f"{slug}.png")

        code = await self._save_with_artifact(AccessCode(
            kind=AccessCodeKind.GLOBAL,
            section=section,
            url=url,
            artifact_ref=artifact_ref,
        ))

        logger.info(f"✅ QR {code.id} created for '{section}'")
        return code

    # =========================================================================
    # READS & DELETION
    # =========================================================================

    async def get_code(self, code_id: str) -> AccessCode:
        code = await self.store.get_access_code(code_id)
        if code is None:
            raise NotFound("AccessCode", code_id)
        return code

    async def list_codes(self, kind: Optional[AccessCodeKind] = None) -> list[AccessCode]:
        return await self.store.query_access_codes(kind=kind)

    async def delete_code(self, code_id: str) -> None:
        """
        Delete a code and release its image.

        The image is released first; if that fails nothing else changes and
        the call can be retried. A table pointing at the code loses its
        reference.

        Raises:
            NotFound: If the code does not exist
            ArtifactGenerationFailed: If the stored image could not be released
        """
        code = await self.get_code(code_id)

        try:
            await self.storage.release(code.artifact_ref)
        except ArtifactStorageError as e:
            logger.error(f"Could not release artifact for QR {code_id}: {e}")
            raise ArtifactGenerationFailed(f"Could not release QR image {code.artifact_ref}") from e

        await self.store.delete_access_code(code_id)

        if code.target_id:
            await self.store.clear_table_access_code(code.target_id, code_id)

        logger.info(f"QR {code_id} ({code.section}) deleted")
