"""
File handling service for the Translation Order Portal.

Uploads received on the API-key surface are written below ``UPLOAD_DIR``
(``translations/`` or ``assets/``) and registered in ``uploaded_files``
together with their analysis.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles

from portal.config import settings
from portal.database.mongodb import database
from portal.exceptions import FileTooLargeError, NotFoundError, ValidationError
from portal.mongodb_models import UploadedFileDocument, UploadedFileType
from portal.services.file_analysis_service import file_analysis_service
from portal.utils.id_generator import FILE_PREFIX, generate_id

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def check_upload_size(content: bytes) -> None:
    """
    Raises:
        FileTooLargeError: ``content`` is larger than MAX_FILE_SIZE
    """
    if len(content) > settings.max_file_size:
        max_mb = settings.max_file_size / (1024 * 1024)
        raise FileTooLargeError(f"File too large. Maximum size is {max_mb:.0f}MB")


def safe_filename(name: str) -> str:
    base_name = os.path.basename(name or "") or "upload"
    return _UNSAFE_FILENAME_CHARS.sub("_", base_name)


class FileService:
    """Service for storing uploads and looking up their analysis."""

    def __init__(self, upload_dir: Optional[str] = None):
        self._upload_dir = upload_dir

    @property
    def upload_dir(self) -> Path:
        return Path(self._upload_dir or settings.upload_dir)

    def _target_dir(self, file_type: str) -> Path:
        sub_dir = "translations" if file_type == UploadedFileType.TRANSLATION.value else "assets"
        return self.upload_dir / sub_dir

    async def store_upload(
        self,
        user: Dict[str, Any],
        file_name: str,
        content: bytes,
        file_type: str,
        description: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Write an upload to disk and register it.

        Translation files are analysed; assets are stored as-is.

        Raises:
            ValidationError: Unknown file type, empty upload or unreadable ZIP
            FileTooLargeError: Upload over MAX_FILE_SIZE
        """
        if file_type not in (UploadedFileType.TRANSLATION.value, UploadedFileType.ASSET.value):
            raise ValidationError('Invalid file type. Must be "translation" or "asset"')
        if not content:
            raise ValidationError("No file uploaded")
        check_upload_size(content)

        analysis = None
        if file_type == UploadedFileType.TRANSLATION.value:
            analysis = file_analysis_service.analyze_upload(file_name, content).to_dict()

        file_id = generate_id(FILE_PREFIX)
        target_dir = self._target_dir(file_type)
        target_dir.mkdir(parents=True, exist_ok=True)
        stored_path = target_dir / f"{file_id}_{safe_filename(file_name)}"

        async with aiofiles.open(stored_path, "wb") as f:
            await f.write(content)

        document = UploadedFileDocument(
            file_id=file_id,
            account_id=user["account_id"],
            user_id=user["user_id"],
            file_type=file_type,
            file_name=file_name,
            stored_path=str(stored_path),
            description=description or "",
            file_size=len(content),
            analysis=analysis
        ).to_mongo()
        await database.uploaded_files.insert_one(document)

        logger.info(f"[FILES] Stored {file_type} file {file_id} ({len(content)} bytes) at {stored_path}")
        return document

    async def get_file(self, account_id: str, file_id: str) -> Dict[str, Any]:
        uploaded = await database.uploaded_files.find_one({"file_id": file_id, "account_id": account_id})
        if not uploaded:
            raise NotFoundError("File not found")
        return uploaded


# Global file service instance
file_service = FileService()
