"""Command-line interface for bulkuploader."""


import argparse
import json
import logging
import os
import sys
from typing import List

from rich.console import Console
from rich.logging import RichHandler
from terminaltables import AsciiTable

from bulkuploader.api import BulkUploader, UploadResult
from bulkuploader.conf import UploaderConf
from bulkuploader.enml import media_refs
from bulkuploader.models import Note, NoteReq
from bulkuploader.stores.base import ErrorCode, NotFoundError, ServiceError, StoreError, TransportError, UserError,\
    VersionError

TOKEN_ENV_VAR = 'AUTH_TOKEN'


def _print_verification(uploader: BulkUploader, note: Note) -> None:
    print(f'After update, note has {len(note.resources or [])} resource(s)')
    print('After update, note tags are:')
    for name in uploader.tag_names(note):
        print(f'* {name}')
    print()


def _print_results_table(results: List[UploadResult]) -> None:
    data = [('Path', 'Title', 'GUID', 'Attachments')]
    for result in results:
        if result.ok:
            data.append((result.path, result.note.title, result.note.guid, len(result.note.resources)))
        else:
            data.append((result.path, '', '', str(result.error)))
    table = AsciiTable(data)
    table.justify_columns[3] = 'right'
    print(table.table)


def _upload(args, uploader: BulkUploader) -> int:
    results = []
    for path in args.paths:
        result = uploader.upload(path)
        results.append(result)
        if not result.ok:
            print(str(result.error), file=sys.stderr)
        elif not (args.json or args.table):
            for attachment in result.note.resources:
                print(f'Attached {attachment.path}')
            print(f'New note {result.note.title} has GUID {result.note.guid}')
            print()

    tag_name = None if args.no_tag else (args.tag[0] if args.tag else uploader.conf.tag_name)
    if tag_name:
        for result in results:
            if not result.ok:
                continue
            note = uploader.add_tag(result.note.guid, tag_name)
            result.note.tag_guids = note.tag_guids
            if not (args.json or args.table):
                print('Successfully added tag to existing note')
                _print_verification(uploader, note)

    if args.json:
        print(json.dumps([r.as_json() for r in results]))
    elif args.table:
        _print_results_table(results)
    return 0 if all(r.ok for r in results) else 1


def _tag(args, uploader: BulkUploader) -> int:
    note = uploader.add_tag(args.guid[0], args.name[0])
    print('Successfully added tag to existing note')
    _print_verification(uploader, note)
    return 0


def _info(args, uploader: BulkUploader) -> int:
    note = uploader.store.get_note(args.guid[0], NoteReq(content=args.content))
    if args.json:
        info = note.as_json()
        info['tags'] = uploader.tag_names(note)
        if args.content:
            info['media'] = [ref._asdict() for ref in media_refs(note.content)]
        print(json.dumps(info))
        return 0
    print(f'guid: {note.guid}')
    print(f'title: {note.title}')
    print(f'created: {note.created}')
    print(f'tags: {", ".join(sorted(uploader.tag_names(note)))}')
    print('resources:')
    for resource in note.resources:
        print(f'\t{resource.file_name} ({resource.mime}, {resource.size} bytes) {resource.hash_hex}')
    if args.content:
        print('media:')
        for ref in media_refs(note.content):
            print(f'\t{ref.type} {ref.hash}')
    return 0


def _report_store_error(error: StoreError) -> None:
    if isinstance(error, UserError):
        if error.code == ErrorCode.AUTH_EXPIRED:
            message = 'Your authentication token is expired!'
        elif error.code == ErrorCode.INVALID_AUTH:
            message = 'Your authentication token is invalid!'
        elif error.code == ErrorCode.QUOTA_REACHED:
            message = 'Your account has reached its upload quota!'
        else:
            message = f'Error: {error.code.name} parameter: {error.parameter}'
    elif isinstance(error, ServiceError):
        message = f'System error: {error.code.name}'
    elif isinstance(error, NotFoundError):
        message = f'Not found: {error.identifier}'
    elif isinstance(error, TransportError):
        message = f'Networking error: {error.message}'
    elif isinstance(error, VersionError):
        message = 'Incompatible Evernote client protocol version'
    else:
        message = f'Error: {error.message}'
    print(message, file=sys.stderr)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(message)s',
        handlers=[
            RichHandler(
                console=Console(stderr=True),
                rich_tracebacks=True,
                show_time=True,
                log_time_format='%H:%M:%S',
            )
        ],
        force=True,
    )


def argparser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=f'Uploads files to a note service as notes with attachments. The service token must be set '
                    f'in the environment variable {TOKEN_ENV_VAR}.')
    parser.set_defaults(func=None)
    parser.add_argument('-v', '--verbose', action='store_true', help='Log debugging details to stderr.')

    subs = parser.add_subparsers(title='Commands')

    p_up = subs.add_parser(
        'upload',
        help='Create one note per path. A file becomes a note with a single attachment; a directory becomes a '
             'note with one attachment for each file directly inside it (hidden files excluded). Each created '
             'note is then tagged, and fetched again to show its tags and attachment count.')
    p_up.add_argument('paths', nargs='+', help='Files or directories to upload.')
    p_up_tags = p_up.add_mutually_exclusive_group()
    p_up_tags.add_argument('--tag', nargs=1,
                           help='Tag to add to each created note. Defaults to conf.tag_name ("BulkUploader").')
    p_up_tags.add_argument('--no-tag', action='store_true', help='Do not tag the created notes.')
    p_up_formats = p_up.add_mutually_exclusive_group()
    p_up_formats.add_argument('-j', '--json', action='store_true',
                              help='Output as JSON. The output is a list with one object per path, giving the '
                                   'created note\'s guid and title, or the reason the path was skipped.')
    p_up_formats.add_argument('-t', '--table', action='store_true', help='Format output as a table.')
    p_up.set_defaults(func=_upload)

    p_tag = subs.add_parser('tag', help='Add a tag to an existing note, leaving its content and attachments alone.')
    p_tag.add_argument('guid', nargs=1, help='GUID of the note.')
    p_tag.add_argument('name', nargs=1, help='Name of the tag. It is created if it does not exist.')
    p_tag.set_defaults(func=_tag)

    p_info = subs.add_parser('info', help='Show a note\'s title, tags and attachments.')
    p_info.add_argument('guid', nargs=1, help='GUID of the note.')
    p_info.add_argument('-c', '--content', action='store_true',
                        help='Also fetch the note body and list the attachments it references.')
    p_info.add_argument('-j', '--json', action='store_true', help='Output as JSON.')
    p_info.set_defaults(func=_info)

    return parser


def main(args=None) -> int:
    """Runs the tool and returns its exit code.

    args may be an array of string command-line arguments; if absent,
    the process's arguments are used.
    """
    parser = argparser()
    args = parser.parse_args(args)
    if not args.func:
        parser.print_help()
        return 1
    _configure_logging(args.verbose)
    token = os.environ.get(TOKEN_ENV_VAR)
    if not token:
        print(f'Please fill in your developer token in environment variable {TOKEN_ENV_VAR}', file=sys.stderr)
        return 1
    try:
        with UploaderConf.for_user().instantiate(token) as uploader:
            return args.func(args, uploader)
    except StoreError as e:
        _report_store_error(e)
        return 1
