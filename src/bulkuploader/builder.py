"""Builds notes from files on disk.

The entry point is :func:`build_note`, which turns a file, or a directory of files, into a :class:`Note`
whose body references one attachment per file.
"""

import logging
import os
import os.path
from typing import Callable, List, Optional

from mako.template import Template

from bulkuploader.conf import default_ignore
from bulkuploader.enml import render_content
from bulkuploader.models import Attachment, KnownMime, MimeType, Note, UNKNOWN_MIME

logger = logging.getLogger(__name__)

_MIME_SUFFIXES = [
    ('.jpg', KnownMime('image/jpg')),
    ('.jpeg', KnownMime('image/jpg')),
    ('.png', KnownMime('image/png')),
    ('.pdf', KnownMime('application/pdf')),
]


class BuildError(Exception):
    """Base class for errors that prevent a note from being built from an input path."""
    def __init__(self, message: str, path: str, cause: BaseException = None):
        super().__init__(f'{message}: {path}')
        self.message = message
        self.path = path
        self.cause = cause


class InputNotFoundError(BuildError):
    """Raised when an input path does not exist or contains no files that can be attached."""
    def __init__(self, path: str):
        super().__init__('Nothing to upload', path)


class FileReadError(BuildError):
    """Raised when a file cannot be read. The note it belonged to is not built at all."""
    def __init__(self, path: str, cause: BaseException = None):
        super().__init__('Cannot read file', path, cause)


def resolve_files(path: str, ignore: Callable[[str, str], bool] = default_ignore) -> List[str]:
    """Returns the files to attach for the given input path.

    If the path is a directory, all of the regular files directly contained by it are returned, sorted by name,
    except for those the ``ignore`` function rejects. Subdirectories are not descended into.
    If the path is a file, just that file is returned.

    Raises :exc:`InputNotFoundError` if that leaves nothing to attach, or :exc:`FileReadError` if the directory
    cannot be listed.
    """
    if os.path.isdir(path):
        parent = os.path.abspath(path)
        try:
            with os.scandir(parent) as entries:
                files = [e for e in entries if e.is_file() and not ignore(parent, e.name)]
        except OSError as e:
            raise FileReadError(path, e)
        files.sort(key=lambda e: e.name)
        result = [os.path.join(parent, e.name) for e in files]
    elif os.path.exists(path):
        result = [path]
    else:
        result = []
    if not result:
        raise InputNotFoundError(path)
    logger.debug('Resolved %d file(s) for %s', len(result), path)
    return result


def title_for_path(path: str) -> str:
    """Returns the filename from the path, minus any directories and the final extension.

    For example, ``/x/y/report.v2.pdf`` becomes ``report.v2``.
    """
    _, filename = os.path.split(os.path.normpath(path))
    title, _ = os.path.splitext(filename)
    return title


def mime_type_for_path(path: str) -> MimeType:
    """Guesses a MIME type from the path's suffix.

    Only a handful of types are recognized, and matching is case-sensitive: ``photo.JPG`` is unknown.
    """
    for suffix, mime in _MIME_SUFFIXES:
        if path.endswith(suffix):
            return mime
    return UNKNOWN_MIME


def read_attachment(path: str) -> Attachment:
    """Reads the full contents of a file into a new :class:`Attachment`.

    Raises :exc:`FileReadError` if the file cannot be opened or read.
    """
    try:
        with open(path, 'rb') as file:
            data = file.read()
    except OSError as e:
        raise FileReadError(path, e)
    attachment = Attachment.from_bytes(data, mime_type_for_path(path), os.path.basename(path),
                                       os.path.abspath(path))
    logger.debug('Read %s (%d bytes, md5 %s)', path, attachment.size, attachment.hash_hex)
    return attachment


def build_note(path: str, ignore: Callable[[str, str], bool] = default_ignore,
               template: Optional[Template] = None) -> Note:
    """Builds a note containing every file resolved from the path, as described in :func:`resolve_files`.

    The title comes from :func:`title_for_path`, and the body has one ``<en-media>`` element per attachment,
    in the same order as :attr:`Note.resources`. A custom Mako template for the body may be given; see
    :func:`bulkuploader.enml.render_content`.

    Raises :exc:`InputNotFoundError` or :exc:`FileReadError`. No partially built note is ever returned.
    """
    title = title_for_path(path)
    attachments = [read_attachment(p) for p in resolve_files(path, ignore)]
    return Note(title=title,
                content=render_content(attachments, title, template),
                resources=attachments)
