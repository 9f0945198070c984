"""Defines the API for talking to a note service.

The most important class is :class:`NoteStore`.
"""

from enum import Enum
import hashlib
from typing import List, Optional

from bulkuploader.enml import media_refs
from bulkuploader.models import Note, NoteReq, NoteReqIsh, Tag


class ErrorCode(Enum):
    """Reasons a note service may give for rejecting a call. Values match the service's own numbering."""
    UNKNOWN = 1
    BAD_DATA_FORMAT = 2
    PERMISSION_DENIED = 3
    INTERNAL_ERROR = 4
    DATA_REQUIRED = 5
    LIMIT_REACHED = 6
    QUOTA_REACHED = 7
    INVALID_AUTH = 8
    AUTH_EXPIRED = 9
    DATA_CONFLICT = 10
    ENML_VALIDATION = 11
    SHARD_UNAVAILABLE = 12
    LEN_TOO_SHORT = 13
    LEN_TOO_LONG = 14
    TOO_FEW = 15
    TOO_MANY = 16
    UNSUPPORTED_OPERATION = 17
    TAKEN_DOWN = 18
    RATE_LIMIT_REACHED = 19

    @classmethod
    def for_name(cls, name: Optional[str]) -> 'ErrorCode':
        try:
            return cls[name]
        except KeyError:
            return cls.UNKNOWN


class StoreError(Exception):
    """Base class for errors raised by a :class:`NoteStore`."""
    def __init__(self, message: str, cause: BaseException = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class UserError(StoreError):
    """Raised when a call fails because of the caller: bad credentials, an invalid parameter, exhausted quota."""
    def __init__(self, code: ErrorCode, parameter: Optional[str] = None, cause: BaseException = None):
        super().__init__(f'{code.name} parameter: {parameter}', cause)
        self.code = code
        self.parameter = parameter


class ServiceError(StoreError):
    """Raised when the service fails for reasons of its own."""
    def __init__(self, code: ErrorCode, message: Optional[str] = None, cause: BaseException = None):
        super().__init__(message or code.name, cause)
        self.code = code


class NotFoundError(StoreError):
    """Raised when a referenced note or tag does not exist."""
    def __init__(self, identifier: str, key: Optional[str] = None, cause: BaseException = None):
        super().__init__(f'{identifier} {key}' if key else identifier, cause)
        self.identifier = identifier
        self.key = key


class TransportError(StoreError):
    """Raised when the service cannot be reached."""


class VersionError(StoreError):
    """Raised when the service does not accept this client's protocol version."""


class NoteStore:
    """Base class for note stores, which create, update and fetch notes and tags on behalf of a user.

    Use an instance as a context manager, or call :meth:`close` when done with it.

    Implementations raise :exc:`StoreError` subclasses and never retry failed calls.
    """
    def create_note(self, note: Note) -> Note:
        """Creates a new note and returns its metadata, including the assigned :attr:`Note.guid`.

        The note must have a title and content, and every ``<en-media>`` element in the content must refer
        to one of its resources.
        """
        raise NotImplementedError()

    def update_note(self, note: Note) -> Note:
        """Changes the note identified by :attr:`Note.guid`.

        Only the fields that are set on the given note are changed; in particular, a note whose content and
        resources are None leaves the existing body and attachments untouched. Tags named in
        :attr:`Note.tag_names` are created if necessary and added to the note.

        Raises :exc:`NotFoundError` if there is no such note.
        """
        raise NotImplementedError()

    def get_note(self, guid: str, fields: NoteReqIsh = NoteReq()) -> Note:
        """Fetches a note. Content and resource bodies are only included if requested in ``fields``.

        Raises :exc:`NotFoundError` if there is no such note.
        """
        raise NotImplementedError()

    def get_tag(self, guid: str) -> Tag:
        """Raises :exc:`NotFoundError` if there is no such tag."""
        raise NotImplementedError()

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class LocalNoteStore(NoteStore):
    """Shared validation for stores that keep notes on this machine rather than in a remote service.

    .. attribute:: upload_limit
       :type: Optional[int]

       Maximum number of attachment bytes the store will accept in total, or None for no limit.
    """
    def __init__(self, upload_limit: Optional[int] = None):
        self.upload_limit = upload_limit

    def _uploaded_bytes(self) -> int:
        raise NotImplementedError()

    def _validate_new(self, note: Note) -> None:
        if not note.title:
            raise UserError(ErrorCode.DATA_REQUIRED, 'Note.title')
        if note.content is None:
            raise UserError(ErrorCode.DATA_REQUIRED, 'Note.content')
        self._validate_body(note.content, note.resources or [])

    def _validate_body(self, content: str, resources: List, freed: int = 0) -> None:
        """Checks resource hashes, media references and quota. ``freed`` is the size of resources being replaced."""
        total = 0
        for resource in resources:
            if resource.data is None:
                raise UserError(ErrorCode.DATA_REQUIRED, 'Resource.data')
            if not hashlib.md5(resource.data).digest() == resource.body_hash:
                raise UserError(ErrorCode.BAD_DATA_FORMAT, 'Resource.data.bodyHash')
            total += len(resource.data)
        hashes = {r.hash_hex for r in resources}
        for ref in media_refs(content):
            if ref.hash not in hashes:
                raise UserError(ErrorCode.ENML_VALIDATION, 'Note.content')
        if self.upload_limit is not None and self._uploaded_bytes() - freed + total > self.upload_limit:
            raise UserError(ErrorCode.QUOTA_REACHED, 'Accounting.uploadLimit')
