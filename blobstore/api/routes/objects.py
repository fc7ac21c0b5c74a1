"""
Object endpoints.

Thin HTTP wrappers around the BlobStore facade. Storage errors are not
caught here; the exception handlers registered in main translate them
into status codes (404 for missing keys, 422 for bad input, 502 for
backend failures).
"""

import logging
from typing import Annotated, Any, Optional
from urllib.parse import quote

from fastapi import APIRouter, File, Query, Request, Response, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ...core.storage import codec
from ...core.storage.models import DEFAULT_URL_EXPIRY, Format, NamedFile, UploadResult
from ..dependencies import BlobStoreDep

logger = logging.getLogger(__name__)

router = APIRouter()
signed_url_router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class UploadResponse(BaseModel):
    """Response after storing an object."""
    location: str
    bucket: str
    etag: Optional[str] = None
    version_id: Optional[str] = None
    parts: int = 1

    @classmethod
    def from_result(cls, result: UploadResult) -> "UploadResponse":
        return cls(
            location=result.location,
            bucket=result.bucket,
            etag=result.etag,
            version_id=result.version_id,
            parts=result.parts,
        )


class ListResponse(BaseModel):
    prefix: str
    names: list[str]


class DeleteResponse(BaseModel):
    location: str
    deleted: bool = True


class SignedUrlResponse(BaseModel):
    url: str
    expires_in: int


class SignUrlRequest(BaseModel):
    """Absolute object URL to sign."""
    url: str = Field(..., min_length=1)
    expires_in: int = Field(default=DEFAULT_URL_EXPIRY, gt=0)


def content_disposition(file_name: str) -> str:
    """
    Attachment header for a download.

    Header values are latin-1 on the wire, so names that need escaping
    go out in the RFC 5987 `filename*` form, as Starlette's FileResponse does.
    """
    quoted = quote(file_name)
    if quoted != file_name:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{file_name}"'


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=ListResponse,
    summary="List objects under a prefix",
)
async def list_objects(
    blob_store: BlobStoreDep,
    prefix: str = "",
    single_page: bool = False,
) -> ListResponse:
    """Names are returned relative to the prefix."""
    names = await blob_store.find_all(prefix, single_page=single_page)
    return ListResponse(prefix=prefix, names=names)


@router.post(
    "/{location:path}",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a file from a multipart form",
)
async def upload_file(
    location: str,
    file: Annotated[UploadFile, File(description="File to store")],
    blob_store: BlobStoreDep,
) -> UploadResponse:
    """
    Store a form upload as a named file.

    The form's content type is kept as the object's ContentType.
    """
    data = await file.read()
    named_file = NamedFile(
        name=file.filename or codec.file_name(location),
        buffer=data,
        mimetype=file.content_type or "application/octet-stream",
    )

    logger.info(
        "File upload received",
        extra={
            "location": location,
            "upload_name": named_file.name,
            "size_bytes": named_file.size,
        }
    )

    result = await blob_store.create(location, named_file, format=Format.NAMED_FILE)
    return UploadResponse.from_result(result)


@router.put(
    "/{location:path}",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Store the request body as an object",
)
async def put_object(
    location: str,
    request: Request,
    blob_store: BlobStoreDep,
    format: Format = Format.RAW,
) -> UploadResponse:
    """
    Store the raw request body.

    With `format=json` the body must be valid JSON; it is parsed and
    re-encoded so what lands in the bucket is canonical JSON.
    """
    body = await request.body()

    if format is Format.JSON:
        result = await blob_store.create(
            location,
            codec.decode(body, Format.JSON, location),
            format=Format.JSON,
        )
    else:
        params: dict[str, Any] = {}
        content_type = request.headers.get("content-type")
        if content_type:
            params["ContentType"] = content_type
        result = await blob_store.create(location, body, params=params)

    return UploadResponse.from_result(result)


@router.head("/{location:path}", summary="Check whether an object exists")
async def head_object(location: str, blob_store: BlobStoreDep) -> Response:
    found = await blob_store.exists(location)
    return Response(status_code=status.HTTP_200_OK if found else status.HTTP_404_NOT_FOUND)


@router.get("/{location:path}", summary="Read an object")
async def get_object(
    location: str,
    blob_store: BlobStoreDep,
    format: Format = Format.RAW,
) -> Response:
    value = await blob_store.find_one(location, format=format)

    if format is Format.JSON:
        return JSONResponse(content=value)

    if format is Format.NAMED_FILE:
        return Response(
            content=value.buffer,
            media_type=value.mimetype,
            headers={"Content-Disposition": content_disposition(value.name)},
        )

    return Response(content=value, media_type="application/octet-stream")


@router.delete(
    "/{location:path}",
    response_model=DeleteResponse,
    summary="Delete an object",
)
async def delete_object(location: str, blob_store: BlobStoreDep) -> DeleteResponse:
    """Deleting a key that doesn't exist still succeeds."""
    await blob_store.remove(location)
    return DeleteResponse(location=location)


@signed_url_router.get(
    "",
    response_model=SignedUrlResponse,
    summary="Signed download URL for an object",
)
async def get_signed_url(
    location: Annotated[str, Query(min_length=1)],
    blob_store: BlobStoreDep,
    expires_in: Annotated[int, Query(gt=0)] = DEFAULT_URL_EXPIRY,
) -> SignedUrlResponse:
    url = await blob_store.get_signed_url_for_location(location, expires_in=expires_in)
    return SignedUrlResponse(url=url, expires_in=expires_in)


@signed_url_router.post(
    "",
    response_model=SignedUrlResponse,
    summary="Sign an absolute object URL",
)
async def sign_url(body: SignUrlRequest, blob_store: BlobStoreDep) -> SignedUrlResponse:
    url = await blob_store.get_signed_url_for_url(body.url, expires_in=body.expires_in)
    return SignedUrlResponse(url=url, expires_in=body.expires_in)
