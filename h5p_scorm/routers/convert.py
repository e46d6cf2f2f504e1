"""
Conversion Router

Accepts an H5P upload and streams the SCORM 1.2 package back.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from ..exceptions import ConversionError
from ..models.conversion import ConversionRequest
from ..services.converter import ConversionService

# Initialize router and logger
router = APIRouter()
logger = logging.getLogger(__name__)


def get_conversion_service(request: Request) -> ConversionService:
    service = getattr(request.app.state, "conversion_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Service unavailable")
    return service


@router.post("/convert", summary="Convert H5P Package to SCORM")
async def convert_h5p(
    h5p_file: Optional[UploadFile] = File(None, description="H5P archive"),
    h5p_mastery_score: Optional[str] = Form(
        None, description="Mastery score 0-100, defaults to 100"
    ),
    service: ConversionService = Depends(get_conversion_service),
) -> StreamingResponse:
    """
    Convert an uploaded H5P package into a SCORM 1.2 zip

    1. Validates the upload and mastery score before touching the disk
    2. Extracts the archive into a private workspace
    3. Wraps the content in the SCORM player and writes imsmanifest.xml
    4. Streams the zip back as an attachment

    The workspace, including the zip, is removed once the response has been
    sent or the client went away.
    """
    request = ConversionRequest(
        upload=h5p_file,
        filename=h5p_file.filename if h5p_file is not None else None,
        mastery_score=h5p_mastery_score,
    )

    try:
        result = await service.convert(request)
    except ConversionError as e:
        raise HTTPException(status_code=e.status_code, detail=e.public_message)
    except Exception as e:
        logger.error("Conversion failed unexpectedly: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Internal Server Error")

    artifact = result.artifact
    headers = {
        "Content-Disposition": f"attachment; filename={artifact.filename}",
        "Content-Length": str(artifact.size),
    }

    return StreamingResponse(
        result.stream(),
        media_type="application/zip",
        headers=headers,
        background=BackgroundTask(result.close),
    )


@router.get("/convert/formats", summary="Get Supported Output Formats")
async def get_output_formats():
    """List the packaging formats this service produces"""
    return {
        "success": True,
        "formats": [
            {
                "id": "scorm_1_2",
                "name": "SCORM 1.2",
                "description": "SCORM 1.2 package wrapping the H5P content",
                "file_extension": ".zip",
                "supported": True,
                "features": [
                    "Mastery score threshold",
                    "Score and pass/fail reporting",
                    "Original H5P content bundled",
                ],
            }
        ],
        "timestamp": datetime.utcnow().isoformat(),
    }
