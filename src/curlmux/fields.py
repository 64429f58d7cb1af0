from __future__ import annotations

import mimetypes
import os
import typing

__all__ = ["FileReference", "guess_content_type", "_TYPE_FIELDS"]


def guess_content_type(filename: str | None, default: str = "application/octet-stream") -> str:
    """
    Guess the "Content-Type" of a file.

    :param filename:
        The filename to guess the "Content-Type" of using :mod:`mimetypes`.
    :param default:
        If no "Content-Type" can be guessed, default to `default`.
    """
    if filename:
        return mimetypes.guess_type(filename)[0] or default
    return default


class FileReference(typing.NamedTuple):
    """
    A multipart form field whose content the transport engine reads from disk.

    :param path:
        Location of the file to upload.
    :param content_type:
        Media type sent for the part. Guessed from ``filename`` (or ``path``)
        by :meth:`from_path` when not given.
    :param filename:
        Name reported to the server in the ``Content-Disposition`` header.
    """

    path: str
    content_type: str
    filename: str

    @classmethod
    def from_path(
        cls,
        path: str,
        content_type: str | None = None,
        filename: str | None = None,
    ) -> FileReference:
        if not filename:
            filename = os.path.basename(path)
        if not content_type:
            content_type = guess_content_type(filename)
        return cls(path, content_type, filename)


_TYPE_FIELD_VALUE = typing.Union[str, bytes, int, FileReference]
_TYPE_FIELDS = typing.Mapping[str, _TYPE_FIELD_VALUE]
