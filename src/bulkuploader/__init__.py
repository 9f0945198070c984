"""Uploads files to a note service as notes with attachments.

If you installed via ``pip``, run ``bulkuploader -h`` to get help.
Or, run ``python3 -m bulkuploader -h``.

To use the Python API, look at :class:`bulkuploader.api.BulkUploader`
"""
