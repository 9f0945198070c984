"""Renders and inspects note bodies.

Note bodies are ENML documents: an XML declaration and doctype, followed by an ``<en-note>`` root element.
Each attachment is referenced from the body by an ``<en-media>`` element carrying the attachment's MIME type
and the hex-encoded MD5 hash of its contents.
"""

from collections import namedtuple
import logging
import os.path
from typing import List, Optional, Sequence

from bs4 import BeautifulSoup
from mako.template import Template

from bulkuploader.models import Attachment, KnownMime, MimeType

logger = logging.getLogger(__name__)

OCTET_STREAM = 'application/octet-stream'

# Backslashes at line ends are consumed by Mako, so the default output contains no newlines.
_DEFAULT_TEMPLATE = Template(r"""<?xml version="1.0" encoding="UTF-8"?>\
<!DOCTYPE en-note SYSTEM "http://xml.evernote.com/pub/enml2.dtd">\
<en-note>\
% for attachment in attachments:
<en-media type="${mime(attachment.mime) | x}" hash="${attachment.hash_hex}"/>\
% endfor
</en-note>""")

MediaRef = namedtuple('MediaRef', ['type', 'hash'])


def mime_value(mime: MimeType) -> str:
    """Returns the MIME string to send for the given type.

    Unknown types are sent as ``application/octet-stream``.
    """
    if isinstance(mime, KnownMime):
        return mime.value
    return OCTET_STREAM


def load_template(path: str) -> Template:
    """Loads a Mako template for note bodies from a file."""
    return Template(filename=os.path.abspath(path))


def render_content(attachments: Sequence[Attachment], title: Optional[str] = None,
                   template: Optional[Template] = None) -> str:
    """Builds a note body with one ``<en-media>`` element per attachment, in order.

    The following names are defined in the template's namespace:

    * ``attachments``: the sequence of :class:`bulkuploader.models.Attachment`
    * ``title``: the note title, which may be None
    * ``mime``: :func:`mime_value`
    """
    template = template or _DEFAULT_TEMPLATE
    content = template.render(attachments=attachments, title=title, mime=mime_value)
    logger.debug('Rendered body with %d media elements', len(attachments))
    return content


def media_refs(content: Optional[str]) -> List[MediaRef]:
    """Returns the ``<en-media>`` references found in a note body, in document order."""
    if not content:
        return []
    soup = BeautifulSoup(content.encode('utf-8'), 'xml')
    return [MediaRef(el.get('type'), el.get('hash')) for el in soup.find_all('en-media')]
