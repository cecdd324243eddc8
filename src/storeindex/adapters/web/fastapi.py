# storeindex/adapters/web/fastapi.py
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Callable, Optional

import uuid

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from storeindex.core.exceptions import SearchIndexError, StoreIndexError, UserInputError
from storeindex.core.interfaces.job_queue import JobQueuePort, is_inspectable
from storeindex.core.interfaces.search_index import SearchIndexPort
from storeindex.core.logging_config import correlation_id_var
from storeindex.core.managers.search_job_buffer_service import SearchJobBufferService
from storeindex.core.models.context import RequestContext
from storeindex.core.models.job import BufferedJob
from storeindex.core.models.problem import ProblemResponse
from storeindex.core.settings import logger


class ReindexRequest(BaseModel):
    channelId: str
    languageCode: str = "en"
    defaultTaxZoneId: Optional[str] = Field(default=None)

    def to_context(self) -> RequestContext:
        return RequestContext(
            channel_id=self.channelId,
            language_code=self.languageCode,
            default_tax_zone_id=self.defaultTaxZoneId,
        )


# Note: this is a driver adapter, it only talks to the core through the
# service and the queue port; the core does not depend on it
def create_app(
    job_queue: JobQueuePort,
    search_index: SearchIndexPort,
    service_factory: Callable[[SearchIndexPort], SearchJobBufferService],
):
    """Create the FastAPI ops app.

    The composition root builds the concrete queue and index adapters and
    passes a factory that wires the core services once both are open. Queue
    and index are entered as async context managers when they support it.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with AsyncExitStack() as stack:
            if hasattr(search_index, "__aenter__"):
                await stack.enter_async_context(search_index)
                if await search_index.check_connection():
                    await search_index.create_index_if_not_exists()
            if hasattr(job_queue, "__aenter__"):
                await stack.enter_async_context(job_queue)
            service = service_factory(search_index)
            await service.bootstrap()
            app.state.search_buffer_service = service
            app.state.job_queue = job_queue
            try:
                yield
            finally:
                await service.shutdown()

    app = FastAPI(title="StoreIndex Ops API", lifespan=lifespan)

    def render_problem(
        problem: ProblemResponse,
        *,
        include_request_id: bool = False,
    ) -> JSONResponse:
        payload = jsonable_encoder(problem.model_dump(exclude_none=True))
        response = JSONResponse(status_code=problem.status, content=payload)
        if include_request_id and problem.additional and problem.additional.requestId:
            response.headers["X-Request-ID"] = problem.additional.requestId
        return response

    def build_problem(
        status: int,
        title: str,
        detail: str,
        request: Request,
        type_uri: str = "about:blank",
    ) -> ProblemResponse:
        return ProblemResponse(
            type=type_uri,
            title=title,
            status=status,
            detail=detail,
            instance=str(request.url),
        )

    # Correlation ID middleware: assigns per-request id (header override) and exposes it to logging
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        incoming = request.headers.get("x-request-id")
        cid = incoming or uuid.uuid4().hex[:12]
        correlation_id_var.set(cid)
        try:
            response = await call_next(request)
        finally:
            # reset so the id does not leak into background work on the same task
            correlation_id_var.set("-")
        response.headers["X-Request-ID"] = cid
        return response

    @app.exception_handler(StoreIndexError)
    async def store_index_exception_handler(request: Request, exc: StoreIndexError):
        if isinstance(exc, UserInputError):
            status, title = 400, "Invalid Input"
        elif isinstance(exc, SearchIndexError):
            status, title = 502, "Search Index Error"
        else:
            status, title = 500, "Search Update Failed"
        logger.error(f"[api:error] {type(exc).__name__}: {exc.message} diagnostic={exc.diagnostic}")
        problem = build_problem(status=status, title=title, detail=exc.message, request=request)
        # only surface the request id for server side errors
        include_request_id = status >= 500
        if include_request_id:
            problem = problem.with_request_id(correlation_id_var.get())
        return render_problem(problem, include_request_id=include_request_id)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/search/pending-updates")
    async def get_pending_search_updates():
        service: SearchJobBufferService = app.state.search_buffer_service
        return {"pendingUpdates": await service.get_pending_search_updates()}

    @app.post("/search/pending-updates/run")
    async def run_pending_search_updates():
        service: SearchJobBufferService = app.state.search_buffer_service
        await service.run_pending_search_updates()
        return {"pendingUpdates": await service.get_pending_search_updates()}

    @app.post("/search/reindex", status_code=202)
    async def reindex(body: ReindexRequest):
        service: SearchJobBufferService = app.state.search_buffer_service
        submitted = await service.reindex(body.to_context())
        if isinstance(submitted, BufferedJob):
            return {"buffered": True, "bufferId": submitted.buffer_id, "job": submitted.job.model_dump(mode="json")}
        return {"buffered": False, "job": submitted.model_dump(mode="json")}

    @app.get("/jobs/{job_id}")
    async def get_job(job_id: str, request: Request):
        queue = app.state.job_queue
        if not is_inspectable(queue):
            problem = build_problem(
                status=404,
                title="Jobs Not Supported",
                detail="The configured job queue cannot be inspected",
                request=request,
            )
            return render_problem(problem)
        job = await queue.find_job(job_id)
        if job is None:
            problem = build_problem(
                status=404,
                title="Job Not Found",
                detail=f"Job '{job_id}' not found",
                request=request,
            )
            return render_problem(problem)
        return JSONResponse(content=job.model_dump(mode="json"))

    return app
