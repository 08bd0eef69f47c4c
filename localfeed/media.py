from __future__ import annotations

import asyncio
import base64
import logging
import mimetypes
import uuid
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Iterable, Sequence

from .errors import UnsupportedMediaType
from .ids import new_id
from .models import EphemeralMedia, MediaAttachment, MediaKind, PersistentMedia

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTACHMENTS = 6

_BLOB_PREFIX = "blob:session/"


@dataclass(frozen=True)
class MediaFile:
    """A user-picked file: name, declared MIME type and raw bytes."""

    name: str
    mime_type: str
    data: bytes

    @classmethod
    def from_path(cls, path: str | Path, *, mime_type: str | None = None) -> "MediaFile":
        p = Path(path)
        declared = (mime_type or "").strip() or (mimetypes.guess_type(p.name)[0] or "")
        return cls(name=p.name, mime_type=declared, data=p.read_bytes())


class SessionResources:
    """
    Process-local registry of session references to binary media.

    References are only valid while the process lives and must be revoked
    to reclaim the bytes. Revoking an unknown or already revoked reference
    raises KeyError.
    """

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._blobs)

    def create(self, data: bytes) -> str:
        url = f"{_BLOB_PREFIX}{uuid.uuid4().hex}"
        with self._lock:
            self._blobs[url] = bytes(data)
        return url

    def resolve(self, url: str) -> bytes:
        with self._lock:
            try:
                return self._blobs[url]
            except KeyError:
                raise KeyError(f"Unknown or revoked session reference: {url}") from None

    def revoke(self, url: str) -> None:
        with self._lock:
            if url not in self._blobs:
                raise KeyError(f"Unknown or revoked session reference: {url}")
            del self._blobs[url]

    def is_live(self, url: str) -> bool:
        with self._lock:
            return url in self._blobs


def encode_data_url(file: MediaFile) -> str:
    payload = base64.b64encode(file.data).decode("ascii")
    return f"data:{file.mime_type};base64,{payload}"


def classify(file: MediaFile) -> MediaKind:
    mime = (file.mime_type or "").strip().lower()
    if mime.startswith("image/"):
        return "image"
    if mime.startswith("video/"):
        return "video"
    raise UnsupportedMediaType(f"Unsupported media type for {file.name!r}: {file.mime_type or 'unknown'}")


class MediaManager:
    """
    Turns picked files into attachments and governs their release.

    Images become persistent inline `data:` URLs. Videos become ephemeral
    session references that must be released on every removal path.
    """

    def __init__(
        self,
        resources: SessionResources | None = None,
        *,
        max_attachments: int = DEFAULT_MAX_ATTACHMENTS,
    ) -> None:
        if max_attachments <= 0:
            raise ValueError("max_attachments must be positive")
        self.resources = resources if resources is not None else SessionResources()
        self.max_attachments = int(max_attachments)
        self._lock = Lock()

    def attach(self, file: MediaFile) -> MediaAttachment:
        kind = classify(file)
        if kind == "image":
            return PersistentMedia(id=new_id(), kind="image", url=encode_data_url(file), name=file.name)

        url = self.resources.create(file.data)
        return EphemeralMedia(id=new_id(), kind="video", url=url, name=file.name)

    async def attach_async(self, file: MediaFile) -> MediaAttachment:
        return await asyncio.to_thread(self.attach, file)

    def attach_many(self, files: Iterable[MediaFile], *, limit: int | None = None) -> list[MediaAttachment]:
        """
        Attach a batch, silently truncated to `limit` (default: max_attachments).

        Files that are neither images nor videos are skipped.
        """
        cap = self.max_attachments if limit is None else max(0, int(limit))
        picked = list(files)[:cap]

        out: list[MediaAttachment] = []
        for f in picked:
            try:
                out.append(self.attach(f))
            except UnsupportedMediaType:
                logger.info("media_skipped name=%s mime_type=%s", f.name, f.mime_type)
        return out

    def release(self, attachment: MediaAttachment) -> bool:
        """
        Release the session resource behind an ephemeral attachment.

        Returns True when a resource was reclaimed by this call. Persistent
        attachments and already released ones are a no-op.
        """
        if not isinstance(attachment, EphemeralMedia):
            return False

        with self._lock:
            if attachment.released:
                return False
            attachment.released = True

        try:
            self.resources.revoke(attachment.url)
        except KeyError:
            logger.warning("media_release_unknown url=%s", attachment.url)
            return False
        return True

    def release_all(self, attachments: Iterable[MediaAttachment]) -> int:
        return sum(1 for a in list(attachments) if self.release(a))


class MediaDraft:
    """
    Attachments of one composer, owned until published or torn down.

    Every removal path (remove, discard, close) releases what it drops.
    `take()` hands the attachments over to a published post without
    releasing them.
    """

    def __init__(self, manager: MediaManager) -> None:
        self._manager = manager
        self._items: list[MediaAttachment] = []
        self._closed = False
        # Bumped by discard(); conversions started under an older value are stale.
        self._generation = 0

    def __enter__(self) -> "MediaDraft":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._items)

    @property
    def attachments(self) -> tuple[MediaAttachment, ...]:
        return tuple(self._items)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def remaining(self) -> int:
        return max(0, self._manager.max_attachments - len(self._items))

    def add_files(self, files: Sequence[MediaFile]) -> list[MediaAttachment]:
        self._ensure_open()
        added = self._manager.attach_many(files, limit=self.remaining)
        return self._accept(added, self._generation)

    async def add_files_async(self, files: Sequence[MediaFile]) -> list[MediaAttachment]:
        self._ensure_open()
        generation = self._generation
        picked = list(files)[: self.remaining]
        added: list[MediaAttachment] = []
        for f in picked:
            try:
                added.append(await self._manager.attach_async(f))
            except UnsupportedMediaType:
                logger.info("media_skipped name=%s mime_type=%s", f.name, f.mime_type)
        return self._accept(added, generation)

    def remove(self, attachment_id: str) -> bool:
        for i, item in enumerate(self._items):
            if item.id == attachment_id:
                del self._items[i]
                self._manager.release(item)
                return True
        return False

    def discard(self) -> None:
        self._generation += 1
        items, self._items = self._items, []
        self._manager.release_all(items)

    def take(self) -> list[MediaAttachment]:
        items, self._items = self._items, []
        return items

    def close(self) -> None:
        if self._closed:
            return
        self.discard()
        self._closed = True

    def _accept(self, added: list[MediaAttachment], generation: int) -> list[MediaAttachment]:
        if self._closed or generation != self._generation:
            self._manager.release_all(added)
            return []

        room = self.remaining
        keep, extra = added[:room], added[room:]
        self._manager.release_all(extra)
        self._items.extend(keep)
        return keep

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("draft is closed")
