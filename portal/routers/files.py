"""
File upload and analysis endpoint for the web client.

The upload is analysed in memory and not stored; the client submits the
returned metadata with its translation request.
"""

from typing import Any, Dict
import logging

from fastapi import APIRouter, Depends, File, UploadFile

from portal.middleware.auth_middleware import get_current_user
from portal.models.translation_request import FileAnalysisResponse
from portal.services.file_analysis_service import file_analysis_service
from portal.services.file_service import check_upload_size

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/files", tags=["Files"])


@router.post("/upload")
async def upload_and_analyze(
    file: UploadFile = File(..., description="Document or ZIP archive to analyse"),
    current_user: Dict[str, Any] = Depends(get_current_user)
):
    """
    Analyse an uploaded document.

    **ZIP archives**: the first PDF, DOCX, XLSX, PPTX, TXT or HTML entry is
    analysed.

    Responses:
    - **200**: analysis (word/character counts, subject matter, source language)
    - **400**: ZIP without a supported document, or corrupt archive
    - **413**: file larger than MAX_FILE_SIZE
    """
    content = await file.read()
    file_name = file.filename or "upload"
    logger.info(f"📄 File upload from {current_user['email']}: {file_name} ({len(content)} bytes)")

    check_upload_size(content)
    analysis = file_analysis_service.analyze_upload(file_name, content)

    return {"success": True, "data": FileAnalysisResponse(**analysis.to_dict()).to_api()}
