import hashlib
import pytest
from bulkuploader.builder import resolve_files, title_for_path, mime_type_for_path, read_attachment, build_note,\
    InputNotFoundError, FileReadError
from bulkuploader.enml import media_refs
from bulkuploader.models import KnownMime, UNKNOWN_MIME

PREAMBLE = ('<?xml version="1.0" encoding="UTF-8"?>'
            '<!DOCTYPE en-note SYSTEM "http://xml.evernote.com/pub/enml2.dtd">'
            '<en-note>')


def test_resolve_files(fs):
    fs.create_file('/in/b.txt')
    fs.create_file('/in/a.png')
    fs.create_file('/in/.hidden')
    fs.create_file('/in/sub/c.png')
    assert resolve_files('/in') == ['/in/a.png', '/in/b.txt']


def test_resolve_files_custom_ignore(fs):
    fs.create_file('/in/a.png')
    fs.create_file('/in/b.tmp')
    fs.create_file('/in/.hidden')
    assert resolve_files('/in', lambda parent, name: name.endswith('.tmp')) == ['/in/.hidden', '/in/a.png']


def test_resolve_files_single_file(fs):
    fs.create_file('/in/.hidden')
    assert resolve_files('/in/.hidden') == ['/in/.hidden']


def test_resolve_files_nothing_usable(fs):
    fs.create_dir('/empty')
    fs.create_file('/hidden-only/.DS_Store')
    fs.create_file('/dirs-only/sub/a.png')
    for path in ['/empty', '/hidden-only', '/dirs-only', '/nonexistent']:
        with pytest.raises(InputNotFoundError) as excinfo:
            resolve_files(path)
        assert excinfo.value.path == path
        assert str(excinfo.value) == f'Nothing to upload: {path}'


def test_resolve_files_unlistable_dir(fs, mocker):
    fs.create_file('/in/locked/a.png')
    mocker.patch('bulkuploader.builder.os.scandir', side_effect=PermissionError(13, 'Permission denied'))
    with pytest.raises(FileReadError) as excinfo:
        resolve_files('/in/locked')
    assert excinfo.value.path == '/in/locked'
    assert isinstance(excinfo.value.cause, PermissionError)
    assert str(excinfo.value) == 'Cannot read file: /in/locked'


def test_title_for_path():
    assert title_for_path('/x/y/report.v2.pdf') == 'report.v2'
    assert title_for_path('report') == 'report'
    assert title_for_path('scans/receipts') == 'receipts'
    assert title_for_path('scans/receipts/') == 'receipts'
    # a leading dot is part of the name, not an extension
    assert title_for_path('/home/me/.bashrc') == '.bashrc'
    assert title_for_path('.notes.txt') == '.notes'


def test_mime_type_for_path():
    assert mime_type_for_path('a.jpg') == KnownMime('image/jpg')
    assert mime_type_for_path('/x/a.jpeg') == KnownMime('image/jpg')
    assert mime_type_for_path('a.png') == KnownMime('image/png')
    assert mime_type_for_path('a.pdf') == KnownMime('application/pdf')
    assert mime_type_for_path('a.txt') == UNKNOWN_MIME
    assert mime_type_for_path('pdf') == UNKNOWN_MIME
    # suffix matching is case-sensitive
    assert mime_type_for_path('photo.JPG') == UNKNOWN_MIME
    assert mime_type_for_path('scan.Pdf') == UNKNOWN_MIME


def test_read_attachment(fs):
    fs.create_file('/in/abc.txt', contents=b'abc')
    attachment = read_attachment('/in/abc.txt')
    assert attachment.data == b'abc'
    assert attachment.hash_hex == '900150983cd24fb0d6963f7d28e17f72'
    assert attachment.body_hash == bytes.fromhex('900150983cd24fb0d6963f7d28e17f72')
    assert attachment.size == 3
    assert attachment.mime == UNKNOWN_MIME
    assert attachment.file_name == 'abc.txt'
    assert attachment.path == '/in/abc.txt'


def test_read_attachment_missing(fs):
    with pytest.raises(FileReadError) as excinfo:
        read_attachment('/in/gone.png')
    assert excinfo.value.path == '/in/gone.png'
    assert isinstance(excinfo.value.cause, FileNotFoundError)


def test_build_note(fs):
    fs.create_file('/in/Receipts/c.pdf', contents=b'%PDF-1.4')
    fs.create_file('/in/Receipts/a.png', contents=b'png bytes')
    fs.create_file('/in/Receipts/b.txt', contents=b'some text')
    fs.create_file('/in/Receipts/.hidden', contents=b'secret')
    note = build_note('/in/Receipts')
    assert note.title == 'Receipts'
    assert note.guid is None
    assert [r.file_name for r in note.resources] == ['a.png', 'b.txt', 'c.pdf']
    hashes = [hashlib.md5(b).hexdigest() for b in [b'png bytes', b'some text', b'%PDF-1.4']]
    assert note.content == (PREAMBLE
                            + f'<en-media type="image/png" hash="{hashes[0]}"/>'
                            + f'<en-media type="application/octet-stream" hash="{hashes[1]}"/>'
                            + f'<en-media type="application/pdf" hash="{hashes[2]}"/>'
                            + '</en-note>')
    refs = media_refs(note.content)
    assert len(refs) == len(note.resources)
    for ref, resource in zip(refs, note.resources):
        assert ref.hash == resource.hash_hex


def test_build_note_single_file(fs):
    fs.create_file('/x/y/report.v2.pdf', contents=b'abc')
    note = build_note('/x/y/report.v2.pdf')
    assert note.title == 'report.v2'
    assert len(note.resources) == 1
    assert note.content == (PREAMBLE
                            + '<en-media type="application/pdf" hash="900150983cd24fb0d6963f7d28e17f72"/>'
                            + '</en-note>')


def test_build_note_empty_dir(fs):
    fs.create_dir('/in/empty')
    with pytest.raises(InputNotFoundError):
        build_note('/in/empty')


def test_build_note_read_failure(fs, mocker):
    fs.create_file('/in/a.png', contents=b'png bytes')
    mocker.patch('bulkuploader.builder.resolve_files', return_value=['/in/a.png', '/in/gone.png'])
    with pytest.raises(FileReadError) as excinfo:
        build_note('/in')
    assert excinfo.value.path == '/in/gone.png'
