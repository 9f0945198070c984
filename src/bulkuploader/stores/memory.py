"""Provides the :class:`MemoryNoteStore` class."""

from dataclasses import replace
from datetime import datetime, timezone
import logging
from typing import Dict, List

import shortuuid

from bulkuploader.conf import MemoryStoreConf
from bulkuploader.models import Attachment, Note, NoteReq, NoteReqIsh, Tag
from bulkuploader.stores.base import ErrorCode, LocalNoteStore, NotFoundError, UserError

logger = logging.getLogger(__name__)


class MemoryNoteStore(LocalNoteStore):
    """Keeps notes and tags in memory for the lifetime of the instance.

    Useful for trying out uploads without an account, and for tests. It enforces the same rules a
    real service does for the calls this package makes, such as requiring resource hashes to match
    their data, and only changing the fields that are set in an update.

    .. attribute:: conf
       :type: bulkuploader.conf.MemoryStoreConf
    """
    def __init__(self, conf: MemoryStoreConf):
        super().__init__(conf.upload_limit)
        self.conf = conf
        self._notes: Dict[str, Note] = {}
        self._tags: Dict[str, Tag] = {}
        self._tags_by_name: Dict[str, Tag] = {}

    def _uploaded_bytes(self) -> int:
        return sum(r.size for note in self._notes.values() for r in note.resources)

    def _tag_for_name(self, name: str) -> Tag:
        name = name.strip()
        if not name:
            raise UserError(ErrorCode.BAD_DATA_FORMAT, 'Tag.name')
        tag = self._tags_by_name.get(name.lower())
        if not tag:
            tag = Tag(shortuuid.uuid(), name)
            self._tags[tag.guid] = tag
            self._tags_by_name[name.lower()] = tag
            logger.debug('Created tag %s (%s)', tag.name, tag.guid)
        return tag

    @staticmethod
    def _sized(resources: List[Attachment]) -> List[Attachment]:
        return [replace(r, size=len(r.data)) for r in resources]

    def _merge_tags(self, existing: List[str], note: Note) -> List[str]:
        guids = list(note.tag_guids) if note.tag_guids is not None else list(existing)
        for guid in guids:
            if guid not in self._tags:
                raise NotFoundError('Tag.guid', guid)
        for name in note.tag_names or []:
            guid = self._tag_for_name(name).guid
            if guid not in guids:
                guids.append(guid)
        return guids

    def _fetch(self, stored: Note, fields: NoteReq) -> Note:
        return replace(stored,
                       content=stored.content if fields.content else None,
                       resources=[r if fields.resources_data else r.without_data() for r in stored.resources],
                       tag_guids=list(stored.tag_guids))

    def create_note(self, note: Note) -> Note:
        self._validate_new(note)
        now = datetime.now(timezone.utc)
        stored = replace(note,
                         guid=shortuuid.uuid(),
                         resources=self._sized(note.resources or []),
                         tag_guids=self._merge_tags([], note),
                         tag_names=None,
                         created=note.created or now,
                         updated=now)
        self._notes[stored.guid] = stored
        logger.debug('Created note %s (%s)', stored.title, stored.guid)
        return self._fetch(stored, NoteReq())

    def update_note(self, note: Note) -> Note:
        if not note.guid:
            raise UserError(ErrorCode.DATA_REQUIRED, 'Note.guid')
        stored = self._notes.get(note.guid)
        if not stored:
            raise NotFoundError('Note.guid', note.guid)
        changes = {}
        if note.title is not None:
            if not note.title:
                raise UserError(ErrorCode.BAD_DATA_FORMAT, 'Note.title')
            changes['title'] = note.title
        if note.content is not None or note.resources is not None:
            content = note.content if note.content is not None else stored.content
            resources = list(note.resources) if note.resources is not None else stored.resources
            freed = sum(r.size for r in stored.resources) if note.resources is not None else 0
            self._validate_body(content, resources, freed)
            changes['content'] = content
            changes['resources'] = self._sized(resources) if note.resources is not None else resources
        changes['tag_guids'] = self._merge_tags(stored.tag_guids, note)
        stored = replace(stored, updated=datetime.now(timezone.utc), **changes)
        self._notes[stored.guid] = stored
        logger.debug('Updated note %s (%s): %s', stored.title, stored.guid, ', '.join(sorted(changes)))
        return self._fetch(stored, NoteReq())

    def get_note(self, guid: str, fields: NoteReqIsh = NoteReq()) -> Note:
        stored = self._notes.get(guid)
        if not stored:
            raise NotFoundError('Note.guid', guid)
        return self._fetch(stored, NoteReq.parse(fields))

    def get_tag(self, guid: str) -> Tag:
        tag = self._tags.get(guid)
        if not tag:
            raise NotFoundError('Tag.guid', guid)
        return tag
