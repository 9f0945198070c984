"""Provides the :class:`SqliteNoteStore` class."""

from collections import namedtuple
from datetime import datetime, timezone
import logging
import sqlite3
from typing import List, Optional

import shortuuid

from bulkuploader.conf import SqliteStoreConf
from bulkuploader.models import Attachment, KnownMime, Note, NoteReq, NoteReqIsh, Tag, parse_mime
from bulkuploader.stores.base import ErrorCode, LocalNoteStore, NotFoundError, UserError

logger = logging.getLogger(__name__)


_SQL_CREATE_SCHEMA = """
CREATE TABLE IF NOT EXISTS notes (
    id INTEGER PRIMARY KEY,
    guid TEXT NOT NULL,
    title TEXT NOT NULL,
    content TEXT NOT NULL,
    created TEXT,
    updated TEXT
);

CREATE UNIQUE INDEX IF NOT EXISTS notes_index_guid ON notes (guid);

CREATE TABLE IF NOT EXISTS resources (
    id INTEGER PRIMARY KEY,
    note_id INTEGER NOT NULL,
    position INTEGER NOT NULL,
    file_name TEXT,
    mime TEXT,
    body_hash BLOB NOT NULL,
    size INTEGER NOT NULL,
    data BLOB NOT NULL,
    FOREIGN KEY(note_id) REFERENCES notes(id)
);

CREATE UNIQUE INDEX IF NOT EXISTS resources_index_note_id_position ON resources (note_id, position);

CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY,
    guid TEXT NOT NULL,
    name TEXT NOT NULL,
    name_key TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS tags_index_guid ON tags (guid);
CREATE UNIQUE INDEX IF NOT EXISTS tags_index_name_key ON tags (name_key);

CREATE TABLE IF NOT EXISTS note_tags (
    note_id INTEGER NOT NULL,
    tag_id INTEGER NOT NULL,
    position INTEGER NOT NULL,
    FOREIGN KEY(note_id) REFERENCES notes(id),
    FOREIGN KEY(tag_id) REFERENCES tags(id)
);

CREATE UNIQUE INDEX IF NOT EXISTS note_tags_index_note_id_tag_id ON note_tags (note_id, tag_id);
"""

_SQL_INSERT_NOTE = 'INSERT INTO notes (guid, title, content, created, updated) VALUES (?, ?, ?, ?, ?)'
_SqlInsertNoteRow = namedtuple('SqlInsertNoteRow', ['guid', 'title', 'content', 'created', 'updated'])

_SQL_SELECT_NOTE = 'SELECT id, guid, title, content, created, updated FROM notes WHERE guid = ?'
_SqlNoteRow = namedtuple('SqlNoteRow', ['id', 'guid', 'title', 'content', 'created', 'updated'])

_SQL_INSERT_RESOURCE = ('INSERT INTO resources (note_id, position, file_name, mime, body_hash, size, data)'
                        ' VALUES (?, ?, ?, ?, ?, ?, ?)')
_SqlInsertResourceRow = namedtuple('SqlInsertResourceRow', ['note_id', 'position', 'file_name', 'mime',
                                                            'body_hash', 'size', 'data'])

_SqlResourceRow = namedtuple('SqlResourceRow', ['file_name', 'mime', 'body_hash', 'size', 'data'])


def _format_time(d: Optional[datetime]) -> Optional[str]:
    return d.isoformat() if d else None


def _parse_time(s: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(s) if s else None


class SqliteNoteStore(LocalNoteStore):
    """Stores notes, attachments and tags in a SQLite database.

    This behaves like a tiny private note service: uploads survive between runs, so you can try out the
    ``upload``, ``tag`` and ``info`` commands without an account. Attachment bodies are stored in the database.

    Remember to call :meth:`close` when done with the instance, or use the instance as a context manager.

    .. attribute:: conf
       :type: bulkuploader.conf.SqliteStoreConf
    """
    def __init__(self, conf: SqliteStoreConf):
        super().__init__(conf.upload_limit)
        if not conf.db_path:
            raise ValueError('`db_path` must be set in SqliteStoreConf.')
        self.conf = conf
        self.connection = None
        self._connect()

    def _connect(self):
        self.connection = sqlite3.connect(self.conf.db_path)
        self.connection.executescript(_SQL_CREATE_SCHEMA)

    def _uploaded_bytes(self) -> int:
        cursor = self.connection.cursor()
        cursor.execute('SELECT COALESCE(SUM(size), 0) FROM resources')
        return cursor.fetchone()[0]

    def _note_row(self, cursor: sqlite3.Cursor, guid: str) -> _SqlNoteRow:
        cursor.execute(_SQL_SELECT_NOTE, (guid,))
        row = cursor.fetchone()
        if not row:
            raise NotFoundError('Note.guid', guid)
        return _SqlNoteRow(*row)

    def _resources(self, cursor: sqlite3.Cursor, note_id: int, with_data: bool) -> List[Attachment]:
        cursor.execute('SELECT file_name, mime, body_hash, size, data FROM resources'
                       ' WHERE note_id = ? ORDER BY position',
                       (note_id,))
        rows = [_SqlResourceRow(*r) for r in cursor.fetchall()]
        return [Attachment(data=bytes(r.data) if with_data else None,
                           mime=parse_mime(r.mime),
                           body_hash=bytes(r.body_hash),
                           file_name=r.file_name,
                           size=r.size)
                for r in rows]

    def _tag_guids(self, cursor: sqlite3.Cursor, note_id: int) -> List[str]:
        cursor.execute('SELECT tags.guid FROM note_tags INNER JOIN tags ON note_tags.tag_id = tags.id'
                       ' WHERE note_tags.note_id = ? ORDER BY note_tags.position',
                       (note_id,))
        return [r[0] for r in cursor.fetchall()]

    def _tag_guid_for_name(self, cursor: sqlite3.Cursor, name: str) -> str:
        name = name.strip()
        if not name:
            raise UserError(ErrorCode.BAD_DATA_FORMAT, 'Tag.name')
        cursor.execute('SELECT guid FROM tags WHERE name_key = ?', (name.lower(),))
        row = cursor.fetchone()
        if row:
            return row[0]
        guid = shortuuid.uuid()
        cursor.execute('INSERT INTO tags (guid, name, name_key) VALUES (?, ?, ?)', (guid, name, name.lower()))
        logger.debug('Created tag %s (%s)', name, guid)
        return guid

    def _set_tags(self, cursor: sqlite3.Cursor, note_id: int, existing: List[str], note: Note) -> None:
        guids = list(note.tag_guids) if note.tag_guids is not None else list(existing)
        for name in note.tag_names or []:
            guid = self._tag_guid_for_name(cursor, name)
            if guid not in guids:
                guids.append(guid)
        cursor.execute('DELETE FROM note_tags WHERE note_id = ?', (note_id,))
        for position, guid in enumerate(guids):
            cursor.execute('SELECT id FROM tags WHERE guid = ?', (guid,))
            row = cursor.fetchone()
            if not row:
                raise NotFoundError('Tag.guid', guid)
            cursor.execute('INSERT INTO note_tags (note_id, tag_id, position) VALUES (?, ?, ?)',
                           (note_id, row[0], position))

    def _insert_resources(self, cursor: sqlite3.Cursor, note_id: int, resources: List[Attachment]) -> None:
        cursor.executemany(_SQL_INSERT_RESOURCE,
                           (_SqlInsertResourceRow(note_id=note_id,
                                                  position=position,
                                                  file_name=r.file_name,
                                                  mime=r.mime.value if isinstance(r.mime, KnownMime) else None,
                                                  body_hash=r.body_hash,
                                                  size=len(r.data),
                                                  data=r.data)
                            for position, r in enumerate(resources)))

    def _fetch(self, cursor: sqlite3.Cursor, guid: str, fields: NoteReq) -> Note:
        row = self._note_row(cursor, guid)
        return Note(title=row.title,
                    content=row.content if fields.content else None,
                    resources=self._resources(cursor, row.id, fields.resources_data),
                    guid=row.guid,
                    tag_guids=self._tag_guids(cursor, row.id),
                    created=_parse_time(row.created),
                    updated=_parse_time(row.updated))

    def create_note(self, note: Note) -> Note:
        self._validate_new(note)
        now = datetime.now(timezone.utc)
        cursor = self.connection.cursor()
        try:
            newrow = _SqlInsertNoteRow(guid=shortuuid.uuid(),
                                       title=note.title,
                                       content=note.content,
                                       created=_format_time(note.created or now),
                                       updated=_format_time(now))
            cursor.execute(_SQL_INSERT_NOTE, newrow)
            note_id = cursor.lastrowid
            self._insert_resources(cursor, note_id, note.resources or [])
            self._set_tags(cursor, note_id, [], note)
            self.connection.commit()
        except BaseException:
            self.connection.rollback()
            raise
        logger.debug('Created note %s (%s)', newrow.title, newrow.guid)
        return self._fetch(cursor, newrow.guid, NoteReq())

    def update_note(self, note: Note) -> Note:
        if not note.guid:
            raise UserError(ErrorCode.DATA_REQUIRED, 'Note.guid')
        cursor = self.connection.cursor()
        row = self._note_row(cursor, note.guid)
        try:
            if note.title is not None:
                if not note.title:
                    raise UserError(ErrorCode.BAD_DATA_FORMAT, 'Note.title')
                cursor.execute('UPDATE notes SET title = ? WHERE id = ?', (note.title, row.id))
            if note.content is not None or note.resources is not None:
                content = note.content if note.content is not None else row.content
                if note.resources is not None:
                    resources = list(note.resources)
                    freed = sum(r.size for r in self._resources(cursor, row.id, False))
                else:
                    resources = self._resources(cursor, row.id, True)
                    freed = 0
                self._validate_body(content, resources, freed)
                cursor.execute('UPDATE notes SET content = ? WHERE id = ?', (content, row.id))
                if note.resources is not None:
                    cursor.execute('DELETE FROM resources WHERE note_id = ?', (row.id,))
                    self._insert_resources(cursor, row.id, resources)
            self._set_tags(cursor, row.id, self._tag_guids(cursor, row.id), note)
            cursor.execute('UPDATE notes SET updated = ? WHERE id = ?',
                           (_format_time(datetime.now(timezone.utc)), row.id))
            self.connection.commit()
        except BaseException:
            self.connection.rollback()
            raise
        logger.debug('Updated note %s (%s)', row.title, row.guid)
        return self._fetch(cursor, row.guid, NoteReq())

    def get_note(self, guid: str, fields: NoteReqIsh = NoteReq()) -> Note:
        return self._fetch(self.connection.cursor(), guid, NoteReq.parse(fields))

    def get_tag(self, guid: str) -> Tag:
        cursor = self.connection.cursor()
        cursor.execute('SELECT guid, name FROM tags WHERE guid = ?', (guid,))
        row = cursor.fetchone()
        if not row:
            raise NotFoundError('Tag.guid', guid)
        return Tag(*row)

    def close(self):
        self.connection.close()
        self.connection = None
