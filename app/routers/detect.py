"""
Detection endpoint.

Accepts either a multipart upload (single ``image`` field) or a JSON body
``{"url": ...}`` and returns the normalized verdict. Nothing is persisted
here; clients save results through POST /history.
"""

from fastapi import APIRouter, Depends, Request
from starlette.datastructures import UploadFile

from app.classifier.models import UploadPayload
from app.config import get_config
from app.errors import InvalidInput
from app.gateway import DetectionGateway, DetectionRequest, get_gateway

router = APIRouter(tags=["detect"])


async def _read_json_request(request: Request) -> DetectionRequest:
    try:
        body = await request.json()
    except ValueError:
        raise InvalidInput("Request body is not valid JSON")

    if not isinstance(body, dict):
        raise InvalidInput("Request body must be a JSON object")

    url = body.get("url")
    if url is not None and not isinstance(url, str):
        raise InvalidInput("url must be a string")

    return DetectionRequest(url=url)


async def _read_multipart_request(request: Request) -> DetectionRequest:
    max_size = get_config().max_upload_size_bytes
    form = await request.form()
    try:
        file = form.get("image")
        url = form.get("url")

        upload = None
        if isinstance(file, UploadFile):
            # Read one byte past the limit so oversize is detectable without
            # buffering the whole body
            content = await file.read(max_size + 1)
            upload = UploadPayload(
                content=content,
                content_type=file.content_type or "",
                filename=file.filename,
            )
        elif file is not None:
            raise InvalidInput("image must be a file")

        if url is not None and not isinstance(url, str):
            raise InvalidInput("url must be a string")

        if upload is None and not url:
            raise InvalidInput("No image file provided")

        return DetectionRequest(upload=upload, url=url)
    finally:
        await form.close()


async def read_detection_request(request: Request) -> DetectionRequest:
    """Build a DetectionRequest from a JSON or multipart HTTP request."""
    content_type = request.headers.get("content-type", "").lower()

    if content_type.startswith("application/json"):
        return await _read_json_request(request)
    if content_type.startswith("multipart/form-data"):
        return await _read_multipart_request(request)

    raise InvalidInput("Send multipart/form-data with an image or JSON with a url")


@router.post("/detect")
async def detect(
    request: Request,
    gateway: DetectionGateway = Depends(get_gateway),
):
    """
    Classify one image.

    Response:
        {
            "aiProbability": 85.42,
            "realProbability": 14.58,
            "final": "AI",
            "processingTime": 1288.52,
            "metaInfo": {"filename", "format", "dimensions", "width", "height"},
            "rawResponse": {...}
        }
    """
    detection_request = await read_detection_request(request)
    outcome = await gateway.detect(detection_request)
    return outcome.to_dict()
