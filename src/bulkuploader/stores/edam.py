"""Provides the :class:`EdamNoteStore` class, which uploads to Evernote using the official SDK.

The SDK (``evernote3``) handles the wire protocol and authentication; this module only converts between
:mod:`bulkuploader.models` and the SDK's types, and translates the SDK's exceptions into
:exc:`bulkuploader.stores.base.StoreError` subclasses.
"""

from dataclasses import replace
from datetime import datetime, timezone
import logging
from typing import Optional

from evernote.api.client import EvernoteClient
from evernote.edam.error.ttypes import EDAMErrorCode, EDAMNotFoundException, EDAMSystemException, EDAMUserException
import evernote.edam.type.ttypes as Types
import evernote.edam.userstore.constants as UserStoreConstants
from thrift.transport.TTransport import TTransportException

from bulkuploader.conf import EdamStoreConf
from bulkuploader.enml import mime_value
from bulkuploader.models import Attachment, Note, NoteReq, NoteReqIsh, Tag, parse_mime
from bulkuploader.stores.base import ErrorCode, NoteStore, NotFoundError, ServiceError, TransportError, UserError,\
    VersionError

logger = logging.getLogger(__name__)


def _error_code(value: Optional[int]) -> ErrorCode:
    return ErrorCode.for_name(EDAMErrorCode._VALUES_TO_NAMES.get(value))


def _from_timestamp(ms: Optional[int]) -> Optional[datetime]:
    if ms is None:
        return None
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def _to_timestamp(d: Optional[datetime]) -> Optional[int]:
    if d is None:
        return None
    return int(d.timestamp() * 1000)


def to_edam_resource(attachment: Attachment) -> Types.Resource:
    data = Types.Data()
    data.bodyHash = attachment.body_hash
    data.size = attachment.size
    data.body = attachment.data
    resource = Types.Resource()
    resource.data = data
    resource.mime = mime_value(attachment.mime)
    attributes = Types.ResourceAttributes()
    attributes.fileName = attachment.file_name
    resource.attributes = attributes
    return resource


def from_edam_resource(resource: Types.Resource) -> Attachment:
    data = resource.data or Types.Data()
    return Attachment(data=data.body,
                      mime=parse_mime(resource.mime),
                      body_hash=data.bodyHash,
                      file_name=resource.attributes.fileName if resource.attributes else None,
                      size=data.size or 0)


def to_edam_note(note: Note) -> Types.Note:
    """Converts the note, leaving every unset field unset so that updates only send what changed."""
    result = Types.Note()
    result.guid = note.guid
    result.title = note.title
    result.content = note.content
    if note.resources is not None:
        result.resources = [to_edam_resource(r) for r in note.resources]
    result.tagGuids = note.tag_guids
    result.tagNames = note.tag_names
    result.created = _to_timestamp(note.created)
    return result


def from_edam_note(note: Types.Note) -> Note:
    return Note(title=note.title,
                content=note.content,
                resources=[from_edam_resource(r) for r in (note.resources or [])],
                guid=note.guid,
                tag_guids=list(note.tagGuids or []),
                created=_from_timestamp(note.created),
                updated=_from_timestamp(note.updated))


def _strip(note: Note) -> Note:
    return replace(note, content=None, resources=[r.without_data() for r in note.resources])


class EdamNoteStore(NoteStore):
    """Talks to the Evernote service.

    Creating an instance contacts the service to check protocol compatibility and to locate the user's
    note store; this raises :exc:`VersionError` if the service rejects this client.

    .. attribute:: conf
       :type: bulkuploader.conf.EdamStoreConf
    """
    def __init__(self, conf: EdamStoreConf, token: str):
        self.conf = conf
        options = {'token': token, 'sandbox': conf.sandbox, 'china': conf.china}
        if conf.service_host:
            options['service_host'] = conf.service_host
        self.client = EvernoteClient(**options)
        user_store = self._call(self.client.get_user_store)
        version_ok = self._call(user_store.checkVersion, conf.app_name,
                                UserStoreConstants.EDAM_VERSION_MAJOR,
                                UserStoreConstants.EDAM_VERSION_MINOR)
        if not version_ok:
            raise VersionError('Incompatible Evernote client protocol version')
        self.note_store = self._call(self.client.get_note_store)

    @staticmethod
    def _call(fn, *args):
        try:
            return fn(*args)
        except EDAMUserException as e:
            raise UserError(_error_code(e.errorCode), e.parameter, e) from e
        except EDAMSystemException as e:
            raise ServiceError(_error_code(e.errorCode), e.message, e) from e
        except EDAMNotFoundException as e:
            raise NotFoundError(e.identifier, e.key, e) from e
        except (TTransportException, OSError) as e:
            raise TransportError(str(e), e) from e

    def create_note(self, note: Note) -> Note:
        created = from_edam_note(self._call(self.note_store.createNote, to_edam_note(note)))
        logger.debug('Created note %s (%s)', created.title, created.guid)
        return _strip(created)

    def update_note(self, note: Note) -> Note:
        updated = from_edam_note(self._call(self.note_store.updateNote, to_edam_note(note)))
        logger.debug('Updated note %s (%s)', updated.title, updated.guid)
        return _strip(updated)

    def get_note(self, guid: str, fields: NoteReqIsh = NoteReq()) -> Note:
        fields = NoteReq.parse(fields)
        note = self._call(self.note_store.getNote, guid, fields.content, fields.resources_data, False, False)
        return from_edam_note(note)

    def get_tag(self, guid: str) -> Tag:
        tag = self._call(self.note_store.getTag, guid)
        return Tag(tag.guid, tag.name)
