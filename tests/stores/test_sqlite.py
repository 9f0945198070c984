from datetime import datetime, timezone
from freezegun import freeze_time
import pytest
from bulkuploader.conf import SqliteStoreConf
from bulkuploader.enml import render_content
from bulkuploader.models import Attachment, KnownMime, Note, NoteReq, Tag, UNKNOWN_MIME
from bulkuploader.stores.base import ErrorCode, NotFoundError, UserError


def config(**kwargs):
    return SqliteStoreConf(db_path=kwargs.pop('db_path', ':memory:'), **kwargs)


def make_note(title, *blobs):
    attachments = [Attachment.from_bytes(b, KnownMime('image/png'), f'{i}.png') for i, b in enumerate(blobs)]
    return Note(title=title, content=render_content(attachments, title), resources=attachments)


def test_init():
    config().instantiate('token').close()


def test_init_requires_path():
    with pytest.raises(ValueError):
        SqliteStoreConf().instantiate('token')


@freeze_time('2012-05-02T03:04:05Z')
def test_create_and_get():
    with config().instantiate('token') as store:
        note = make_note('Scans', b'one', b'two')
        note.resources.append(Attachment.from_bytes(b'three', UNKNOWN_MIME, 'three.dat'))
        note.content = render_content(note.resources)
        created = store.create_note(note)
        assert created.guid
        assert created.title == 'Scans'
        assert created.content is None
        assert [r.file_name for r in created.resources] == ['0.png', '1.png', 'three.dat']
        assert [r.data for r in created.resources] == [None, None, None]
        assert [r.mime for r in created.resources] == [KnownMime('image/png'), KnownMime('image/png'),
                                                       UNKNOWN_MIME]
        assert created.created == datetime(2012, 5, 2, 3, 4, 5, tzinfo=timezone.utc)

        fetched = store.get_note(created.guid, NoteReq.full())
        assert fetched.content == note.content
        assert fetched.resources == [r for r in note.resources]


def test_create_validation():
    with config(upload_limit=6).instantiate('token') as store:
        with pytest.raises(UserError) as excinfo:
            store.create_note(Note(title='No body'))
        assert excinfo.value.parameter == 'Note.content'
        store.create_note(make_note('First', b'one'))
        with pytest.raises(UserError) as excinfo:
            store.create_note(make_note('Second', b'four'))
        assert excinfo.value.code == ErrorCode.QUOTA_REACHED


def test_update_tags_only():
    with config().instantiate('token') as store:
        note = make_note('Scans', b'one')
        guid = store.create_note(note).guid
        updated = store.update_note(Note(guid=guid, tag_names=['X']))
        assert len(updated.resources) == 1
        assert store.get_tag(updated.tag_guids[0]) == Tag(updated.tag_guids[0], 'X')
        updated = store.update_note(Note(guid=guid, tag_names=['x', 'Y']))
        assert [store.get_tag(g).name for g in updated.tag_guids] == ['X', 'Y']
        fetched = store.get_note(guid, NoteReq.full())
        assert fetched.content == note.content
        assert [r.data for r in fetched.resources] == [b'one']


def test_update_content():
    with config().instantiate('token') as store:
        guid = store.create_note(make_note('Scans', b'one', b'two')).guid
        replacement = make_note('Scans', b'three')
        store.update_note(Note(guid=guid, content=replacement.content, resources=replacement.resources))
        fetched = store.get_note(guid, 'content,resources_data')
        assert fetched.content == replacement.content
        assert [r.data for r in fetched.resources] == [b'three']


def test_update_rolls_back_on_error():
    with config().instantiate('token') as store:
        guid = store.create_note(make_note('Scans', b'one')).guid
        dangling = make_note('Scans', b'two')
        with pytest.raises(UserError):
            store.update_note(Note(guid=guid, title='Renamed', content=dangling.content))
        assert store.get_note(guid).title == 'Scans'


def test_not_found():
    with config().instantiate('token') as store:
        with pytest.raises(NotFoundError):
            store.get_note('nope')
        with pytest.raises(NotFoundError):
            store.update_note(Note(guid='nope', title='X'))
        with pytest.raises(NotFoundError):
            store.get_tag('nope')
        guid = store.create_note(make_note('Scans', b'one')).guid
        with pytest.raises(NotFoundError):
            store.update_note(Note(guid=guid, tag_guids=['nope']))


def test_persistence(tmp_path):
    conf = config(db_path=str(tmp_path / 'notes.sqlite3'))
    with conf.instantiate('token') as store:
        guid = store.create_note(make_note('Scans', b'one')).guid
        store.update_note(Note(guid=guid, tag_names=['X']))
    with conf.instantiate('token') as store:
        fetched = store.get_note(guid, NoteReq.full())
        assert fetched.title == 'Scans'
        assert [r.data for r in fetched.resources] == [b'one']
        assert [store.get_tag(g).name for g in fetched.tag_guids] == ['X']
