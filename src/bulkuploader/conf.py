from __future__ import annotations
from dataclasses import dataclass, field, replace
import os.path
from typing import Callable, Optional


def default_ignore(parentpath: str, filename: str) -> bool:
    return filename.startswith('.')


@dataclass
class StoreConf:
    """Base class for note store config. Use a subclass such as :class:`EdamStoreConf`."""

    def instantiate(self, token: str):
        raise NotImplementedError("Please use a subclass like EdamStoreConf instead!")

    def standardize(self):
        return self


@dataclass
class MemoryStoreConf(StoreConf):
    """Configures uploads to go to a :class:`bulkuploader.stores.memory.MemoryNoteStore`.

    Nothing is persisted once the process exits. The token is not checked.
    """

    upload_limit: Optional[int] = None
    """Maximum total bytes of attachments to accept before failing with a quota error."""

    def instantiate(self, token: str):
        from bulkuploader.stores.memory import MemoryNoteStore
        return MemoryNoteStore(self)


@dataclass
class SqliteStoreConf(StoreConf):
    """Configures uploads to go to a local SQLite database, via :class:`bulkuploader.stores.sqlite.SqliteNoteStore`.

    The token is not checked.
    """

    db_path: str = None
    """Required. Path where the SQLite database file should be stored.

    The file will be created if it does not exist."""

    upload_limit: Optional[int] = None
    """Maximum total bytes of attachments to accept before failing with a quota error."""

    def instantiate(self, token: str):
        from bulkuploader.stores.sqlite import SqliteNoteStore
        return SqliteNoteStore(self.standardize())

    def standardize(self):
        if not self.db_path or self.db_path == ':memory:':
            return self
        return replace(self, db_path=os.path.abspath(os.path.expanduser(self.db_path)))


@dataclass
class EdamStoreConf(StoreConf):
    """Configures uploads to go to Evernote, via :class:`bulkuploader.stores.edam.EdamNoteStore`.

    This requires the ``evernote3`` package, which you can get by installing ``bulkuploader[evernote]``.
    """

    sandbox: bool = True
    """If True, the developer sandbox service is used rather than production. Tokens are not interchangeable."""

    china: bool = False
    """If True, the service for accounts in mainland China is used."""

    service_host: Optional[str] = None
    """Overrides the host name chosen from :attr:`sandbox` and :attr:`china`."""

    app_name: str = 'BulkUploader (Python)'
    """Client name reported to the service when checking protocol compatibility."""

    def instantiate(self, token: str):
        from bulkuploader.stores.edam import EdamNoteStore
        return EdamNoteStore(self, token)


@dataclass
class UploaderConf:
    store_conf: StoreConf = field(default_factory=EdamStoreConf)
    """Configures where notes are uploaded."""

    tag_name: str = 'BulkUploader'
    """The tag added to each uploaded note by the ``upload`` command, unless ``--tag`` or ``--no-tag`` is given."""

    ignore: Callable[[str, str], bool] = default_ignore
    """Use this to indicate files that should not be attached when uploading a directory.

    The first argument is the path to the directory containing the file, and the second argument is
    the filename. Files named directly on the command line are never ignored.

    The default behavior is to ignore all files whose name begins with a period (``.``).
    """

    body_template: Optional[str] = None
    """Path to a Mako template used to render note bodies, instead of the built-in one.

    The template must produce valid ENML with one ``<en-media>`` element per attachment. See
    :func:`bulkuploader.enml.render_content` for the names available in the template.
    """

    @classmethod
    def user_conf_path(cls) -> str:
        return os.path.expanduser(os.path.join('~', '.bulkuploader.conf.py'))

    @classmethod
    def for_user(cls) -> UploaderConf:
        """Loads the variable ``conf`` from ``~/.bulkuploader.conf.py``.

        If the file does not exist, the default configuration (uploading to the Evernote sandbox) is returned.
        """
        path = cls.user_conf_path()
        if not os.path.exists(path):
            return cls()
        with open(path, 'r') as file:
            conf_script = file.read()
        context = {}
        exec(conf_script, context)
        if 'conf' not in context or not isinstance(context['conf'], cls):
            raise Exception('You need to assign an instance of UploaderConf to the variable `conf` '
                            f'in your config file: {path}')
        return context['conf']

    def standardize(self):
        return replace(
            self,
            store_conf=self.store_conf.standardize(),
            body_template=os.path.abspath(os.path.expanduser(self.body_template)) if self.body_template else None
        )

    def instantiate(self, token: str):
        from bulkuploader.api import BulkUploader
        return BulkUploader(self.standardize(), token)
