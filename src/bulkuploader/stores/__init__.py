"""Clients for the services notes are uploaded to.

:class:`bulkuploader.stores.base.NoteStore` is the API every store implements.
The other modules in this package provide implementations.
"""
