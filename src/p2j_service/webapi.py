import asyncio
import logging
import os

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.datastructures import UploadFile as FormFile

from p2j_service.conversion import (
    ParseService,
    PayloadTooLarge,
    RequestContext,
    ResponseEnvelope,
    StagedDocument,
    StagingGateway,
    UnsafeReference,
)
from p2j_service.conversion.adapters import LocalStaging, build_engine
from p2j_service.conversion.interfaces import ParseEngine
from p2j_service.settings import ServiceConfig

logger = logging.getLogger(__name__)

# Sent on every response so browser clients on any origin can read results
RESPONSE_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "X-Requested-With",
    "Cache-Control": "no-cache, must-revalidate",
}


class DocumentRef(BaseModel):
    folderName: str = "data"
    pdfId: str


class Exchange:
    """Transport side of one request context: the reply slot and its continuation."""

    def __init__(self) -> None:
        self.status_code: int | None = None
        self.body: object = None
        self.done = asyncio.Event()

    def send(self, status_code: int, body: object) -> None:
        self.status_code = status_code
        self.body = body

    def finish(self) -> None:
        self.done.set()


def create_app(
    config: ServiceConfig | None = None,
    *,
    engine: ParseEngine | None = None,
    staging: StagingGateway | None = None,
) -> FastAPI:
    config = config or ServiceConfig.from_env()
    engine = engine or build_engine(config.engine)
    staging = staging or LocalStaging(
        config.upload_dir, config.document_root, max_upload_mb=config.max_upload_mb
    )
    service = ParseService(
        engine,
        name=config.name,
        timeout_sec=config.parse_timeout_sec,
        max_workers=config.parse_workers,
    )

    app = FastAPI(
        title="PDF to JSON Service",
        version=config.version,
        description=(
            "Parses PDF documents and returns their text runs and form-field "
            "values as a minimal JSON projection."
        ),
    )
    app.state.config = config
    app.state.service = service
    app.state.staging = staging

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        service.close()

    @app.middleware("http")
    async def _customize_headers(request: Request, call_next):
        response = await call_next(request)
        for key, value in RESPONSE_HEADERS.items():
            response.headers[key] = value
        return response

    async def _parse_staged(request: Request, staged: StagedDocument) -> object:
        exchange = Exchange()
        context = RequestContext(request, exchange, exchange.finish, staged.path)
        logger.info("%s received request:%s:%s", config.name, request.method, staged.path)
        try:
            await service.handle(context, staged.path)
        except Exception:
            logger.exception("%s could not parse %s", config.name, staged.path)
            staging.discard(staged.path)
            raise
        await exchange.done.wait()
        return exchange.body

    async def _parse_all(request: Request, staged_docs: list[StagedDocument]) -> list[object]:
        results = await asyncio.gather(
            *(_parse_staged(request, staged) for staged in staged_docs),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise HTTPException(
                    status_code=500, detail={"code": "parse_failed", "message": str(result)}
                ) from result
        return list(results)

    async def _parse_reference(request: Request, folder_name: str, pdf_id: str) -> JSONResponse:
        try:
            staged = await asyncio.to_thread(staging.stage_reference, folder_name, pdf_id)
        except UnsafeReference as e:
            raise HTTPException(status_code=400, detail={"code": "bad_reference", "message": str(e)})
        except FileNotFoundError as e:
            raise HTTPException(status_code=404, detail={"code": "not_found", "message": str(e)})
        except OSError as e:
            raise HTTPException(status_code=500, detail={"code": "staging_failed", "message": str(e)})
        [body] = await _parse_all(request, [staged])
        return JSONResponse(content=body)

    @app.get("/p2jsvc/status")
    async def status() -> JSONResponse:
        envelope = ResponseEnvelope(200, "OK", config.name, config.version)
        return JSONResponse(content=envelope.to_dict())

    @app.post("/upload")
    async def upload(request: Request) -> JSONResponse:
        """Parse every file part of a multipart upload.

        Each part is staged to its own temp file and parsed with its own
        request context. A single part answers its envelope; several parts
        answer a list of envelopes in part order.
        """
        form = await request.form()
        parts = [value for _, value in form.multi_items() if isinstance(value, FormFile)]
        if not parts:
            raise HTTPException(status_code=400, detail={"code": "no_file", "message": "no file parts in upload"})

        staged_docs: list[StagedDocument] = []
        try:
            for part in parts:
                staged = await staging.stage_upload(part.filename or "upload", part.read)
                logger.info("File: %s Path: %s", part.filename, staged.path)
                staged_docs.append(staged)
        except PayloadTooLarge as e:
            for staged in staged_docs:
                staging.discard(staged.path)
            raise HTTPException(status_code=413, detail={"code": "payload_too_large", "message": str(e)})
        except OSError as e:
            for staged in staged_docs:
                staging.discard(staged.path)
            raise HTTPException(status_code=500, detail={"code": "staging_failed", "message": str(e)})
        finally:
            await form.close()

        bodies = await _parse_all(request, staged_docs)
        return JSONResponse(content=bodies[0] if len(bodies) == 1 else bodies)

    @app.get("/p2jsvc/data/{pdf_id}")
    async def parse_by_id(pdf_id: str, request: Request) -> JSONResponse:
        return await _parse_reference(request, "data", pdf_id)

    @app.post("/p2jsvc")
    async def parse_by_ref(ref: DocumentRef, request: Request) -> JSONResponse:
        return await _parse_reference(request, ref.folderName, ref.pdfId)

    return app


app = create_app()


def run() -> None:
    """Run a development ASGI server using uvicorn.

    Exposes the app at host:port (default 0.0.0.0:7799). Set PORT env var to override.
    """
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "7799"))
    reload = os.getenv("RELOAD", "false").lower() in {"1", "true", "yes", "on"}
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    uvicorn.run("p2j_service.webapi:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    run()
