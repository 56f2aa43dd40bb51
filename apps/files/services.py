import logging
import mimetypes
import re
from typing import Tuple

from django.core.files.base import ContentFile, File
from django.core.files.storage import default_storage
from django.db import models
from django.utils.translation import gettext_lazy as _

logger = logging.getLogger(__name__)


class FileType(models.TextChoices):
    PDF = "pdf", _("PDF")
    VIDEO = "video", _("Video")
    AUDIO = "audio", _("Audio")
    IMAGE = "image", _("Image")
    DOCUMENT = "document", _("Document")
    PRESENTATION = "presentation", _("Presentation")
    SPREADSHEET = "spreadsheet", _("Spreadsheet")
    ARCHIVE = "archive", _("Archive")
    CODE = "code", _("Code")
    OTHER = "other", _("Other")


_ARCHIVE_EXTENSIONS = re.compile(r"\.(zip|rar|7z|tar|gz)$")
_CODE_EXTENSIONS = re.compile(r"\.(js|ts|py|java|cpp|c|html|css|json|xml)$")


def guess_mime_type(filename: str, declared: str | None = None) -> str:
    return declared or mimetypes.guess_type(filename or "")[0] or "application/octet-stream"


def classify_file_type(mime_type: str, filename: str) -> str:
    """
    Map an uploaded binary onto a FileType.

    Media prefixes and PDF are checked first; then MIME substrings and
    filename extensions decide between the office, archive and code buckets.
    """
    mime_type = (mime_type or "").lower()
    filename = (filename or "").lower()

    if mime_type.startswith("video/"):
        return FileType.VIDEO
    if mime_type.startswith("audio/"):
        return FileType.AUDIO
    if mime_type.startswith("image/"):
        return FileType.IMAGE
    if mime_type == "application/pdf":
        return FileType.PDF

    if (
        "word" in mime_type
        or "document" in mime_type
        or filename.endswith((".doc", ".docx"))
    ):
        return FileType.DOCUMENT
    if "presentation" in mime_type or filename.endswith((".ppt", ".pptx")):
        return FileType.PRESENTATION
    if "sheet" in mime_type or filename.endswith((".xls", ".xlsx")):
        return FileType.SPREADSHEET
    if (
        "zip" in mime_type
        or "rar" in mime_type
        or "7z" in mime_type
        or _ARCHIVE_EXTENSIONS.search(filename)
    ):
        return FileType.ARCHIVE
    if _CODE_EXTENSIONS.search(filename):
        return FileType.CODE
    return FileType.OTHER


class StorageError(Exception):
    """The binary storage backend failed to save or delete an object."""


class StorageService:
    """Thin wrapper around the configured Django storage backend."""

    @staticmethod
    def save_object(path: str, content, content_type: str | None = None) -> Tuple[str, str]:
        """
        Store ``content`` (bytes or a file-like object) under ``path``.
        Returns ``(stored_path, url)``; the backend may alter the path to keep
        it unique.
        """
        if isinstance(content, (bytes, bytearray)):
            payload = ContentFile(bytes(content))
        elif isinstance(content, File):
            payload = content
        else:
            payload = File(content)
        if content_type:
            payload.content_type = content_type

        try:
            stored_path = default_storage.save(path, payload)
            url = default_storage.url(stored_path)
        except Exception as e:
            logger.error(f"Failed to save object {path}: {e}", exc_info=True)
            raise StorageError(f"Failed to save object {path}: {e}") from e

        logger.info(f"Stored object {stored_path} ({content_type or 'unknown type'})")
        return stored_path, url

    @staticmethod
    def delete_object(path: str) -> None:
        """Remove the object at ``path``. Missing objects are not an error."""
        try:
            if default_storage.exists(path):
                default_storage.delete(path)
        except Exception as e:
            raise StorageError(f"Failed to delete object {path}: {e}") from e
        logger.info(f"Deleted object from storage: {path}")
