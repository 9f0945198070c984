"""Provides the main entry point for using the library, :class:`BulkUploader`"""

from __future__ import annotations
from dataclasses import dataclass
import logging
from typing import Iterable, List, Optional

from bulkuploader.builder import BuildError, build_note
from bulkuploader.conf import UploaderConf
from bulkuploader.enml import load_template
from bulkuploader.models import Note, NoteReq

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    """The outcome of uploading one input path.

    Exactly one of :attr:`note` and :attr:`error` is set.
    """

    path: str

    note: Optional[Note] = None
    """The note as built locally, with :attr:`Note.guid` filled in from the store."""

    error: Optional[BuildError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_json(self) -> dict:
        return {
            'path': self.path,
            'guid': self.note.guid if self.note else None,
            'title': self.note.title if self.note else None,
            'attachments': [r.path for r in self.note.resources] if self.note else [],
            'error': str(self.error) if self.error else None
        }


class BulkUploader:
    """Main entry point for uploading files as notes programmatically.

    Generally, you should get an instance using :meth:`BulkUploader.for_user`. Call :meth:`close` when you're
    done with it, or else use it as a context manager.

    .. attribute:: conf
       :type: bulkuploader.conf.UploaderConf

    .. attribute:: store
       :type: bulkuploader.stores.base.NoteStore

       The session with the note service. Errors it raises are passed through every method here unchanged.

    Here's an example that uploads a folder of scans and tags the result:

    .. code-block:: python

       from bulkuploader.api import BulkUploader
       with BulkUploader.for_user(os.environ['AUTH_TOKEN']) as uploader:
           result = uploader.upload('scans/2020-taxes')
           if result.ok:
               uploader.add_tag(result.note.guid, 'taxes')
    """

    @staticmethod
    def for_user(token: str) -> BulkUploader:
        """Creates an instance using the user's ``~/.bulkuploader.conf.py`` file, or the defaults if there is none."""
        return UploaderConf.for_user().instantiate(token)

    def __init__(self, conf: UploaderConf, token: str):
        self.conf = conf
        self.template = load_template(conf.body_template) if conf.body_template else None
        self.store = conf.store_conf.instantiate(token)

    def build(self, path: str) -> Note:
        """Builds, but does not upload, the note for the given path.

        See :func:`bulkuploader.builder.build_note`.
        """
        return build_note(path, self.conf.ignore, self.template)

    def upload(self, path: str) -> UploadResult:
        """Builds a note from the file or directory at the given path and creates it in the store.

        If the note cannot be built, the returned result holds the :exc:`bulkuploader.builder.BuildError` and nothing
        is sent to the store. Errors from the store itself are raised.
        """
        try:
            note = self.build(path)
        except BuildError as e:
            logger.debug('Skipping %s: %s', path, e)
            return UploadResult(path, error=e)
        created = self.store.create_note(note)
        note.guid = created.guid
        note.created = created.created
        note.tag_guids = created.tag_guids
        return UploadResult(path, note=note)

    def upload_all(self, paths: Iterable[str]) -> List[UploadResult]:
        """Calls :meth:`upload` for each path. A path that cannot be built does not stop the others."""
        return [self.upload(p) for p in paths]

    def add_tag(self, guid: str, tag_name: str) -> Note:
        """Adds a tag to an existing note, without resending its content or attachments.

        Returns the note's metadata as fetched again after the update, so callers can confirm the tag was added
        and the attachments are still there.
        """
        note = self.store.get_note(guid, NoteReq()).metadata()
        note.tag_names = (note.tag_names or []) + [tag_name]
        self.store.update_note(note)
        return self.store.get_note(guid, NoteReq())

    def tag_names(self, note: Note) -> List[str]:
        """Looks up the names of the note's tags."""
        return [self.store.get_tag(guid).name for guid in note.tag_guids or []]

    def close(self):
        """Closes the store session."""
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
