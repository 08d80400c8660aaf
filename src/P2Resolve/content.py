# === NAVMAP v1 ===
# {
#   "module": "P2Resolve.content",
#   "purpose": "Find which physical encoding of a metadata document exists and open it",
#   "sections": [
#     {"id": "archiveentrystream", "name": "ArchiveEntryStream", "anchor": "class-archiveentrystream", "kind": "class"},
#     {"id": "contentlocator", "name": "ContentLocator", "anchor": "class-contentlocator", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Fallback discovery for repository metadata documents.

P2 publishes the same document as ``name.xml.xz``, as ``name.xml`` inside
``name.jar``, or as plain ``name.xml``. :class:`ContentLocator` probes those
encodings in that order and returns a readable binary stream for the first
one that exists.
"""

from __future__ import annotations

import io
import logging
import lzma
import re
import zipfile
from pathlib import Path
from typing import BinaryIO, Optional

from .errors import MalformedDocumentError
from .locators import Locator, LocatorSet, last_segment, raw_path, with_path
from .network.fetch import FetchClient

__all__ = ["ArchiveEntryStream", "ContentLocator", "XZ_SUFFIX", "ARCHIVE_SUFFIX"]

LOGGER = logging.getLogger(__name__)

XZ_SUFFIX = ".xz"
ARCHIVE_SUFFIX = ".jar"
_XML_SUFFIX_RE = re.compile(r"\.xml$")


class ArchiveEntryStream(io.RawIOBase):
    """Readable stream over one archive entry that owns the archive handle.

    Closing the stream closes the entry and then the archive, exactly once,
    even if reading failed part way through.
    """

    def __init__(self, archive: zipfile.ZipFile, name: str) -> None:
        super().__init__()
        self._archive = archive
        self._entry = archive.open(name)
        self.name = name

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        data = self._entry.read(len(buffer))
        size = len(data)
        buffer[:size] = data
        return size

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._entry.close()
        finally:
            try:
                self._archive.close()
            finally:
                super().close()


class ContentLocator:
    """Open the first existing encoding of a metadata locator."""

    def __init__(self, client: FetchClient, defaults: LocatorSet) -> None:
        self.client = client
        self.defaults = defaults

    def open(self, locator: Locator) -> Optional[BinaryIO]:
        """Return a binary stream for ``locator`` or ``None`` when no encoding exists.

        Order: ``.xz`` name as given; ``<name>.xz`` sibling; ``<name>`` inside the
        ``.jar`` sibling; the plain file.
        """

        path = raw_path(locator)
        if path.endswith(XZ_SUFFIX):
            found = self.client.fetch(locator)
            if found is None:
                self._report_missing(locator)
                return None
            return self._xz_stream(found)

        found = self.client.fetch(with_path(locator, path + XZ_SUFFIX))
        if found is not None:
            return self._xz_stream(found)

        if _XML_SUFFIX_RE.search(path):
            archive_locator = with_path(locator, _XML_SUFFIX_RE.sub(ARCHIVE_SUFFIX, path))
            found = self.client.fetch(archive_locator)
            if found is not None:
                stream = self._archive_stream(found, last_segment(locator), archive_locator)
                if stream is not None:
                    return stream

        found = self.client.fetch(locator)
        if found is not None:
            return found.open("rb")

        self._report_missing(locator)
        return None

    def _report_missing(self, locator: Locator) -> None:
        if locator in self.defaults:
            LOGGER.debug("no content for default locator %s", locator, extra={"locator": locator})
        else:
            LOGGER.error("Invalid locator %s: no encoding found", locator, extra={"locator": locator})

    @staticmethod
    def _xz_stream(path: Path) -> BinaryIO:
        return lzma.open(path, "rb")

    @staticmethod
    def _archive_stream(path: Path, name: str, archive_locator: Locator) -> Optional[BinaryIO]:
        try:
            archive = zipfile.ZipFile(path)
        except zipfile.BadZipFile as exc:
            raise MalformedDocumentError(f"Corrupt archive {archive_locator}: {exc}") from exc
        try:
            archive.getinfo(name)
        except KeyError:
            archive.close()
            LOGGER.debug("archive %s has no entry %s", archive_locator, name)
            return None
        try:
            return ArchiveEntryStream(archive, name)
        except Exception:
            archive.close()
            raise
