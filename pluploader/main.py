import logging
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse

from .assembler import Callback, UploadAssembler
from .config import Settings, settings as default_settings
from .errors import ErrorChannel, format_limit
from .models import UploadTable
from .schemas import ERROR_BAD_REQUEST, ERROR_INTERNAL, ChunkProgress, rpc_error
from .sweeper import StaleUploadSweeper

logging.basicConfig(
    level=getattr(logging, default_settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

router = APIRouter()

def get_assembler(request: Request) -> UploadAssembler:
    return request.app.state.assembler

@router.post("/upload")
async def upload_chunk(request: Request, assembler: UploadAssembler = Depends(get_assembler)):
    state = request.app.state
    return await assembler.handle_request(request, on_complete=state.on_complete, on_chunk=state.on_chunk)

@router.get("/upload/status", response_model=ChunkProgress)
async def get_status(name: str, chunks: int = 1, assembler: UploadAssembler = Depends(get_assembler)):
    progress = assembler.progress(name, chunks)
    if progress is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=rpc_error(name, ERROR_BAD_REQUEST, f"No pending upload for {name} in {chunks} chunk(s)"),
        )
    return progress

@router.get("/health")
async def health(request: Request):
    return {"status": "ok", "pending_uploads": len(request.app.state.table)}

def create_app(
    settings: Optional[Settings] = None,
    detector: Optional[Callable[[bytes], Awaitable[str]]] = None,
    errors: Optional[ErrorChannel] = None,
    on_complete: Optional[Callback] = None,
    on_chunk: Optional[Callback] = None,
) -> FastAPI:
    settings = settings or default_settings
    table = UploadTable()
    sweeper = StaleUploadSweeper(table, interval=settings.CLEANUP_INTERVAL, stale_after=settings.STALE_THRESHOLD)
    assembler = UploadAssembler(table, upload_limit=settings.UPLOAD_LIMIT, detector=detector, errors=errors)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting upload service (limit {format_limit(settings.UPLOAD_LIMIT)}M)")
        sweeper.start()
        yield
        await sweeper.stop()
        logger.info("Upload service stopped")

    app = FastAPI(title="Pluploader", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.table = table
    app.state.sweeper = sweeper
    app.state.assembler = assembler
    app.state.on_complete = on_complete
    app.state.on_chunk = on_chunk
    app.include_router(router)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=rpc_error(None, ERROR_INTERNAL, "Internal server error"),
        )

    return app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        create_app(),
        host=default_settings.HOST,
        port=default_settings.PORT,
        log_level=default_settings.LOG_LEVEL.lower(),
    )
