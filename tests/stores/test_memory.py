import hashlib
from datetime import datetime, timezone
from freezegun import freeze_time
import pytest
from bulkuploader.conf import MemoryStoreConf
from bulkuploader.enml import render_content
from bulkuploader.models import Attachment, KnownMime, Note, NoteReq, Tag
from bulkuploader.stores.base import ErrorCode, NotFoundError, UserError


def config(**kwargs):
    return MemoryStoreConf(**kwargs)


def make_note(title, *blobs):
    attachments = [Attachment.from_bytes(b, KnownMime('image/png'), f'{i}.png') for i, b in enumerate(blobs)]
    return Note(title=title, content=render_content(attachments, title), resources=attachments)


@freeze_time('2012-05-02T03:04:05Z')
def test_create_and_get():
    store = config().instantiate('token')
    note = make_note('Scans', b'one', b'two')
    created = store.create_note(note)
    assert created.guid
    assert created.title == 'Scans'
    assert created.content is None
    assert [r.data for r in created.resources] == [None, None]
    assert [r.hash_hex for r in created.resources] == [r.hash_hex for r in note.resources]
    assert created.tag_guids == []
    assert created.created == datetime(2012, 5, 2, 3, 4, 5, tzinfo=timezone.utc)

    fetched = store.get_note(created.guid)
    assert fetched.content is None
    assert len(fetched.resources) == 2
    fetched = store.get_note(created.guid, 'content,resources_data')
    assert fetched.content == note.content
    assert [r.data for r in fetched.resources] == [b'one', b'two']


def test_create_validation():
    store = config().instantiate('token')
    note = make_note('', b'one')
    with pytest.raises(UserError) as excinfo:
        store.create_note(note)
    assert excinfo.value.code == ErrorCode.DATA_REQUIRED
    assert excinfo.value.parameter == 'Note.title'

    bad = Attachment(data=b'one', mime=KnownMime('image/png'), body_hash=bytes(16), file_name='one.png', size=3)
    with pytest.raises(UserError) as excinfo:
        store.create_note(Note(title='Bad', content=render_content([bad]), resources=[bad]))
    assert excinfo.value.code == ErrorCode.BAD_DATA_FORMAT
    assert excinfo.value.parameter == 'Resource.data.bodyHash'

    note = make_note('Dangling', b'one')
    note.resources = []
    with pytest.raises(UserError) as excinfo:
        store.create_note(note)
    assert excinfo.value.code == ErrorCode.ENML_VALIDATION


def test_quota():
    store = config(upload_limit=6).instantiate('token')
    store.create_note(make_note('First', b'one'))
    with pytest.raises(UserError) as excinfo:
        store.create_note(make_note('Second', b'four'))
    assert excinfo.value.code == ErrorCode.QUOTA_REACHED
    store.create_note(make_note('Third', b'two'))


def test_quota_counts_data_not_declared_size():
    def unsized_note(title):
        attachment = Attachment(data=b'12345', mime=KnownMime('image/png'), body_hash=hashlib.md5(b'12345').digest(),
                                file_name='a.png')
        return Note(title=title, content=render_content([attachment], title), resources=[attachment])

    store = config(upload_limit=6).instantiate('token')
    created = store.create_note(unsized_note('First'))
    assert store.get_note(created.guid).resources[0].size == 5
    with pytest.raises(UserError) as excinfo:
        store.create_note(unsized_note('Second'))
    assert excinfo.value.code == ErrorCode.QUOTA_REACHED


def test_update_tags_only():
    store = config().instantiate('token')
    note = make_note('Scans', b'one')
    guid = store.create_note(note).guid
    updated = store.update_note(Note(guid=guid, tag_names=['X']))
    assert len(updated.tag_guids) == 1
    assert store.get_tag(updated.tag_guids[0]) == Tag(updated.tag_guids[0], 'X')
    fetched = store.get_note(guid, NoteReq.full())
    assert fetched.title == 'Scans'
    assert fetched.content == note.content
    assert [r.data for r in fetched.resources] == [b'one']

    # existing tags are reused, case-insensitively
    updated = store.update_note(Note(guid=guid, tag_names=['x', 'Y']))
    assert len(updated.tag_guids) == 2
    assert [store.get_tag(g).name for g in updated.tag_guids] == ['X', 'Y']

    updated = store.update_note(Note(guid=guid, tag_guids=[updated.tag_guids[1]]))
    assert [store.get_tag(g).name for g in updated.tag_guids] == ['Y']


def test_update_with_metadata_only_resources():
    store = config().instantiate('token')
    guid = store.create_note(make_note('Scans', b'one')).guid
    fetched = store.get_note(guid)
    fetched.tag_names = ['X']
    with pytest.raises(UserError) as excinfo:
        store.update_note(fetched)
    assert excinfo.value.code == ErrorCode.DATA_REQUIRED
    assert excinfo.value.parameter == 'Resource.data'
    store.update_note(fetched.metadata())
    assert len(store.get_note(guid).resources) == 1


def test_update_content():
    store = config(upload_limit=6).instantiate('token')
    guid = store.create_note(make_note('Scans', b'one', b'two')).guid
    replacement = make_note('Renamed', b'three')
    updated = store.update_note(Note(guid=guid, title='Renamed', content=replacement.content,
                                     resources=replacement.resources))
    assert updated.title == 'Renamed'
    assert [r.file_name for r in updated.resources] == ['0.png']
    assert store.get_note(guid, 'content').content == replacement.content


def test_not_found():
    store = config().instantiate('token')
    with pytest.raises(NotFoundError) as excinfo:
        store.get_note('nope')
    assert excinfo.value.identifier == 'Note.guid'
    with pytest.raises(NotFoundError):
        store.update_note(Note(guid='nope', tag_names=['X']))
    with pytest.raises(NotFoundError) as excinfo:
        store.get_tag('nope')
    assert excinfo.value.identifier == 'Tag.guid'
    with pytest.raises(UserError):
        store.update_note(Note(tag_names=['X']))
