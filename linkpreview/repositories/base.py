"""Abstract base class for metadata stores.

A store maps a URL fingerprint to a persisted ``MetadataDocument``.  The
resolver only talks to this interface, so eviction or expiry policies can
be added by a new implementation without touching the resolver or the
formatter.

Extending with a new backend:
    1. Subclass ``MetadataStore`` and implement ``exists``, ``read`` and
       ``write``.
    2. Map backend failures onto ``NotFoundError``, ``CorruptDataError``,
       ``WriteError`` (or the ``StoreError`` base for anything else).
    3. Wire it up in ``build_store`` (``linkpreview.main``).

Example::

    class MemoryStore(MetadataStore):
        def __init__(self) -> None:
            self._docs: dict[str, MetadataDocument] = {}

        async def exists(self, key: str) -> bool:
            return key in self._docs

        async def read(self, key: str) -> MetadataDocument:
            try:
                return self._docs[key]
            except KeyError:
                raise NotFoundError(key) from None

        async def write(self, key: str, document: MetadataDocument) -> None:
            self._docs[key] = document
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from linkpreview.models.metadata.document import MetadataDocument


class StoreError(Exception):
    """Base class for metadata store failures."""


class NotFoundError(StoreError):
    """No entry is stored under the requested key."""


class CorruptDataError(StoreError):
    """An entry exists but cannot be read back as a ``MetadataDocument``."""


class WriteError(StoreError):
    """An entry could not be persisted."""


class MetadataStore(ABC):
    """Persistent fingerprint -> ``MetadataDocument`` cache.

    Implementations must tolerate concurrent reads and concurrent writes,
    including two writes to the same key (last write wins) without
    corrupting other keys.
    """

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return ``True`` if an entry is stored under *key*."""

    @abstractmethod
    async def read(self, key: str) -> MetadataDocument:
        """Load the entry stored under *key*.

        Raises:
            NotFoundError: nothing is stored under *key*.
            CorruptDataError: the stored bytes are not a valid document.
        """

    @abstractmethod
    async def write(self, key: str, document: MetadataDocument) -> None:
        """Persist *document* under *key*, replacing any existing entry.

        Raises:
            WriteError: the entry could not be persisted.
        """
