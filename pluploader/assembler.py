"""
Chunked upload assembly.
Collects Plupload-style chunks per upload, enforces the size limit and
hands finished uploads, with their detected content type, to a callback.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.datastructures import FormData

from .errors import (
    ChunkReadError,
    DetectionError,
    ErrorChannel,
    InvalidUploadRequest,
    UploadLimitExceeded,
)
from .models import PendingUpload, UploadTable, upload_identity
from .schemas import (
    ERROR_BAD_REQUEST,
    ERROR_INPUT_STREAM,
    ERROR_INTERNAL,
    AssembledFile,
    ChunkProgress,
    rpc_error,
    rpc_result,
)

logger = logging.getLogger(__name__)

Callback = Callable[[Any, Optional[Request]], Union[Response, Awaitable[Response]]]

def convert_bytes_to_megabytes(size: int) -> float:
    return size / 1024 / 1024

def default_response(result: Union[AssembledFile, ChunkProgress], request: Optional[Request]) -> Response:
    return JSONResponse(rpc_result(result.name))

class UploadPart(BaseModel):
    """One parsed multipart submission: the file part plus its chunk fields."""

    name: str
    chunk: int = 0
    chunks: int = 1
    file: Any

def _parse_count(value: Any, field: str, default: int, minimum: int) -> int:
    if value is None or value == "":
        return default
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise InvalidUploadRequest(f"Field '{field}' must be an integer, got {value!r}")
    if count < minimum:
        raise InvalidUploadRequest(f"Field '{field}' must be at least {minimum}, got {count}")
    return count

def parse_upload_part(form: FormData) -> UploadPart:
    """
    Extract the file part and chunk metadata from a parsed form.

    A submission without chunk fields is a single-chunk upload
    (chunk 0 of 1). The name falls back to the file part's filename.

    Raises:
        InvalidUploadRequest: no file part, no name, or malformed counts
    """
    file = form.get("file")
    if file is None or isinstance(file, str):
        raise InvalidUploadRequest("Missing 'file' part")

    name = form.get("name") or getattr(file, "filename", None)
    if not name:
        raise InvalidUploadRequest("Missing file name")

    chunk = _parse_count(form.get("chunk"), "chunk", default=0, minimum=0)
    chunks = _parse_count(form.get("chunks"), "chunks", default=1, minimum=1)
    if chunk >= chunks:
        raise InvalidUploadRequest(f"Chunk index {chunk} is out of range for {chunks} chunk(s)", name=name)

    return UploadPart(name=name, chunk=chunk, chunks=chunks, file=file)

async def _invoke(callback: Callback, result: Any, request: Optional[Request]) -> Response:
    response = callback(result, request)
    if inspect.isawaitable(response):
        response = await response
    return response

class UploadAssembler:
    def __init__(
        self,
        table: UploadTable,
        upload_limit: float = 16,
        detector: Optional[Callable[[bytes], Awaitable[str]]] = None,
        errors: Optional[ErrorChannel] = None,
    ):
        if detector is None:
            from .detection import detect_mime_type
            detector = detect_mime_type

        self.table = table
        self.upload_limit = upload_limit
        self.detector = detector
        self.errors = errors or ErrorChannel()

    async def exceeds_limit(self, identity: str) -> bool:
        upload = self.table.get(identity)
        if upload is None:
            return False
        return convert_bytes_to_megabytes(upload.size) > self.upload_limit

    def progress(self, name: str, chunks: int) -> Optional[ChunkProgress]:
        upload = self.table.get(upload_identity(name, chunks))
        if upload is None:
            return None
        return self._progress(upload)

    async def handle_request(
        self,
        request: Request,
        on_complete: Optional[Callback] = None,
        on_chunk: Optional[Callback] = None,
    ) -> Response:
        form = await request.form()
        try:
            part = parse_upload_part(form)
        except InvalidUploadRequest as e:
            logger.warning(f"Rejected upload request: {e}")
            return self._error_response(e.name, ERROR_BAD_REQUEST, str(e), status.HTTP_400_BAD_REQUEST)

        return await self.handle_part(part, request, on_complete, on_chunk)

    async def handle_part(
        self,
        part: UploadPart,
        request: Optional[Request] = None,
        on_complete: Optional[Callback] = None,
        on_chunk: Optional[Callback] = None,
    ) -> Response:
        on_complete = on_complete or default_response
        on_chunk = on_chunk or default_response

        identity = upload_identity(part.name, part.chunks)
        self.table.get_or_create(identity, part.name, part.chunks)

        try:
            data = await part.file.read()
        except Exception as e:
            error = ChunkReadError(
                f"Failed to read chunk {part.chunk} of {part.name}: {e}",
                name=part.name,
                identity=identity,
            )
            error.__cause__ = e
            upload = self.table.get(identity)
            if upload is not None and upload.received == 0:
                self.table.delete(identity)
            self.errors.publish(error)
            return self._error_response(
                part.name, ERROR_INPUT_STREAM, str(error), status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        # Recreated if the sweeper evicted it while the chunk was being read
        upload = self.table.get_or_create(identity, part.name, part.chunks)
        received = self.table.append_chunk(identity, data, part.chunk)
        progress = self._progress(upload)
        logger.debug(f"Chunk {part.chunk} of {part.name}: {received}/{part.chunks} received")

        if await self.exceeds_limit(identity):
            error = UploadLimitExceeded(self.upload_limit, name=part.name, identity=identity)
            logger.warning(f"Upload {part.name} rejected at {progress.size} bytes: {error}")
            return self._error_response(part.name, ERROR_INTERNAL, str(error), 413)

        if received != part.chunks:
            return await _invoke(on_chunk, progress, request)

        completed = self.table.take_completed(identity)
        if completed is None:
            # Another request already completed it, or it was evicted
            logger.info(f"Upload {part.name} no longer pending, skipping completion")
            return await _invoke(on_chunk, progress, request)

        return await self._complete(completed, identity, request, on_complete)

    async def _complete(
        self,
        upload: PendingUpload,
        identity: str,
        request: Optional[Request],
        on_complete: Callback,
    ) -> Response:
        data = upload.assemble()
        try:
            mime_type = await self.detector(data)
        except Exception as e:
            error = DetectionError(
                f"Failed to detect content type of {upload.name}: {e}",
                name=upload.name,
                identity=identity,
            )
            error.__cause__ = e
            self.errors.publish(error)
            return self._error_response(
                upload.name, ERROR_INTERNAL, str(error), status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        assembled = AssembledFile(name=upload.name, data=data, size=len(data), type=mime_type)
        logger.info(f"Upload {upload.name} complete: {assembled.size} bytes, {assembled.type}")
        return await _invoke(on_complete, assembled, request)

    @staticmethod
    def _progress(upload: PendingUpload) -> ChunkProgress:
        return ChunkProgress(
            name=upload.name,
            chunk=upload.indices[-1] if upload.indices else 0,
            chunks=upload.chunks,
            received=upload.received,
            size=upload.size,
        )

    @staticmethod
    def _error_response(name: Optional[str], code: int, message: str, status_code: int) -> JSONResponse:
        return JSONResponse(status_code=status_code, content=rpc_error(name, code, message))
