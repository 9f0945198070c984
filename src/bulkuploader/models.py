"""Defines classes for representing notes, their attachments, and fetch requests.

The most important classes are :class:`Attachment` and :class:`Note`.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
import hashlib
from typing import Optional, Union, Iterable, List


@dataclass(frozen=True)
class KnownMime:
    """A MIME type that was recognized from a file name."""

    value: str

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class UnknownMime:
    """Marks a file whose type could not be determined.

    How this is rendered into a note body or a store payload is up to the renderer;
    see :func:`bulkuploader.enml.mime_value`.
    """

    def __str__(self):
        return 'unknown'


UNKNOWN_MIME = UnknownMime()

MimeType = Union[KnownMime, UnknownMime]


def parse_mime(value: Optional[str]) -> MimeType:
    """Converts a MIME string read back from a store into a :data:`MimeType`."""
    if not value:
        return UNKNOWN_MIME
    return KnownMime(value)


@dataclass(frozen=True)
class Attachment:
    """A binary file attached to a note (a "resource" in the note service's terminology).

    Instances are created once per input file and never modified. Stores may hand back copies whose
    :attr:`data` is None, when the resource bodies were not requested.
    """

    data: Optional[bytes]
    """The raw contents of the file, or None if only metadata was fetched."""

    mime: MimeType

    body_hash: bytes
    """MD5 digest of :attr:`data`. This is a content address, not a security measure."""

    file_name: str
    """Base name of the file the attachment was read from."""

    size: int = 0

    path: Optional[str] = None
    """Absolute path the attachment was read from, when it was built locally."""

    @classmethod
    def from_bytes(cls, data: bytes, mime: MimeType, file_name: str, path: Optional[str] = None) -> Attachment:
        return cls(data=data,
                   mime=mime,
                   body_hash=hashlib.md5(data).digest(),
                   file_name=file_name,
                   size=len(data),
                   path=path)

    @property
    def hash_hex(self) -> str:
        """The lowercase hexadecimal form of :attr:`body_hash`, as used in ``<en-media>`` elements."""
        return self.body_hash.hex()

    def without_data(self) -> Attachment:
        return replace(self, data=None)


@dataclass
class Note:
    """A titled document with a markup body and zero or more attachments.

    Every attribute is optional. An attribute that is None is "unset": stores leave the corresponding
    field untouched when such a note is passed to :meth:`bulkuploader.stores.base.NoteStore.update_note`,
    and fetch methods leave it unset when it was not requested.
    """

    title: Optional[str] = None

    content: Optional[str] = None
    """The ENML body; see :mod:`bulkuploader.enml`."""

    resources: Optional[List[Attachment]] = None
    """Attachments, in the same order as the ``<en-media>`` elements of :attr:`content`."""

    guid: Optional[str] = None
    """Identifier assigned by the store when the note is created."""

    tag_guids: Optional[List[str]] = None

    tag_names: Optional[List[str]] = None
    """Names of tags to apply in a create or update call. Stores create missing tags by name."""

    created: Optional[datetime] = None

    updated: Optional[datetime] = None

    def metadata(self) -> Note:
        """Returns a copy with :attr:`content` and :attr:`resources` unset.

        Sending the result to ``update_note`` changes only the remaining fields.
        """
        return replace(self, content=None, resources=None,
                       tag_guids=list(self.tag_guids) if self.tag_guids is not None else None,
                       tag_names=list(self.tag_names) if self.tag_names is not None else None)

    def as_json(self) -> dict:
        """Returns a dict representing the note (without attachment bodies), suitable for serializing as json."""
        return {
            'guid': self.guid,
            'title': self.title,
            'created': self.created.isoformat() if self.created else None,
            'tag_guids': self.tag_guids,
            'resources': [{'file_name': r.file_name, 'mime': str(r.mime), 'hash': r.hash_hex, 'size': r.size}
                          for r in (self.resources or [])]
        }


@dataclass(frozen=True)
class Tag:
    guid: str
    name: str


@dataclass
class NoteReq:
    """Specifies which heavyweight fields to fetch with :meth:`bulkuploader.stores.base.NoteStore.get_note`.

    Metadata such as title, tags and the list of resources (without their bodies) is always returned.
    """

    content: bool = False
    resources_data: bool = False

    @classmethod
    def parse(cls, val: NoteReqIsh) -> NoteReq:
        """Converts the parameter to a NoteReq, if it isn't one already.

        You can pass a comma-separated string like ``"content,resources_data"`` or a list of strings.
        """
        if isinstance(val, NoteReq):
            return val
        if isinstance(val, str):
            return cls.parse(s.strip() for s in val.split(',') if s.strip())
        return cls(**{k: True for k in val})

    @classmethod
    def full(cls) -> NoteReq:
        return cls(content=True, resources_data=True)


NoteReqIsh = Union[str, Iterable[str], NoteReq]
