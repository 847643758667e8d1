"""One JSON file per fingerprint in a single flat directory."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from linkpreview.models.metadata.document import MetadataDocument
from linkpreview.repositories.base import (
    CorruptDataError,
    MetadataStore,
    NotFoundError,
    StoreError,
    WriteError,
)

logger = logging.getLogger(__name__)


class FileMetadataStore(MetadataStore):
    """Stores each document as ``<directory>/<fingerprint>.json``.

    Writes land in a temporary file next to the target and are moved into
    place with ``os.replace``, so readers only ever see complete files and
    racing writers to one key leave exactly one of their documents behind.
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self._dir = Path(directory)

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, key: str) -> Path:
        return self._dir / f"{key}.json"

    async def exists(self, key: str) -> bool:
        path = self.path_for(key)
        try:
            return await asyncio.to_thread(path.is_file)
        except OSError as exc:
            raise StoreError(f"Could not check {path}: {exc}") from exc

    async def read(self, key: str) -> MetadataDocument:
        return await asyncio.to_thread(self._read_sync, key)

    async def write(self, key: str, document: MetadataDocument) -> None:
        await asyncio.to_thread(self._write_sync, key, document)

    # ------------------------------------------------------------------
    # Blocking helpers (run in a worker thread)
    # ------------------------------------------------------------------

    def _read_sync(self, key: str) -> MetadataDocument:
        path = self.path_for(key)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            logger.debug("No cache file at %s", path)
            raise NotFoundError(key) from None
        except OSError as exc:
            raise CorruptDataError(f"Could not read {path}: {exc}") from exc

        try:
            return MetadataDocument.from_json(raw)
        except ValidationError as exc:
            raise CorruptDataError(f"Invalid metadata in {path}: {exc}") from exc

    def _write_sync(self, key: str, document: MetadataDocument) -> None:
        path = self.path_for(key)
        tmp_name: str | None = None
        try:
            payload = document.to_json()
            self._dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._dir,
                prefix=f".{key}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(payload)
            os.replace(tmp_name, path)
        except (OSError, ValueError, PydanticSerializationError) as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise WriteError(f"Could not write {path}: {exc}") from exc
