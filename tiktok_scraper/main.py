from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from tiktok_scraper.config import settings
from tiktok_scraper.errors import CheckpointError, InvalidSearchError, RunCancelledError, ScrapeSetupError
from tiktok_scraper.logs import get_logger, log_event
from tiktok_scraper.models import ActiveRun, ScrapeRequest, ScrapeResponse, ScrapeResponseData
from tiktok_scraper.processor import ScrapeService, build_service


logger = get_logger("http")

_service: Optional[ScrapeService] = None


def get_service() -> ScrapeService:
    global _service
    if _service is None:
        _service = build_service()
    return _service


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    if _service is not None:
        await _service.shutdown()


app = FastAPI(title="TikTok Scrape Service", version="0.1.0", lifespan=lifespan)


def verify_token(authorization: str | None = Header(default=None)) -> None:
    if not settings.scraper_api_token:
        return
    expected = f"Bearer {settings.scraper_api_token}"
    if authorization != expected:
        raise HTTPException(status_code=401, detail="Unauthorized")


def _error_response(status: int, error: str, message: str, **extra: object) -> JSONResponse:
    log_event(logger, logging.ERROR, "request_failed", status=status, error=error, detail=message)
    return JSONResponse(status_code=status, content={"statusCode": status, "error": error, "message": message, **extra})


@app.exception_handler(InvalidSearchError)
async def invalid_search_handler(_: Request, exc: InvalidSearchError) -> JSONResponse:
    return _error_response(400, "Bad Request", str(exc))


@app.exception_handler(CheckpointError)
async def checkpoint_handler(_: Request, exc: CheckpointError) -> JSONResponse:
    return _error_response(503, "Checkpoint", str(exc), retryable=exc.retryable)


@app.exception_handler(RunCancelledError)
async def cancelled_handler(_: Request, exc: RunCancelledError) -> JSONResponse:
    return _error_response(409, "Cancelled", str(exc))


@app.exception_handler(ScrapeSetupError)
async def setup_handler(_: Request, exc: ScrapeSetupError) -> JSONResponse:
    return _error_response(502, "Bad Gateway", str(exc))


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/tiktok-scraper/filter/cached", dependencies=[Depends(verify_token)], response_model=ScrapeResponse)
async def scrape_filter_cached(req: ScrapeRequest, service: ScrapeService = Depends(get_service)) -> ScrapeResponse:
    result = await service.scrape_annotate_and_cache(
        req.search,
        req.keyword,
        req.max_count,
        req.show_video_only_with_match_keyword,
        req.force_refresh,
    )
    return ScrapeResponse(
        message="OK",
        data=ScrapeResponseData(
            keyword=req.keyword,
            query=req.search,
            from_cache=result.from_cache,
            metrics=None if result.from_cache else result.metrics,
            items=result.items,
        ),
    )


@app.get("/tiktok-scraper/runs", dependencies=[Depends(verify_token)], response_model=list[ActiveRun])
async def list_runs(service: ScrapeService = Depends(get_service)) -> list[ActiveRun]:
    return service.registry.list()


@app.post("/tiktok-scraper/runs/{run_id}/cancel", dependencies=[Depends(verify_token)])
async def cancel_run(run_id: str, service: ScrapeService = Depends(get_service)) -> dict[str, str]:
    control = service.registry.get(run_id)
    if control is None:
        raise HTTPException(status_code=404, detail="Run not found")
    control.cancel()
    return {"runId": run_id, "status": "cancelling"}


@app.post("/tiktok-scraper/runs/{run_id}/resume", dependencies=[Depends(verify_token)])
async def resume_run(run_id: str, service: ScrapeService = Depends(get_service)) -> dict:
    control = service.registry.get(run_id)
    if control is None:
        raise HTTPException(status_code=404, detail="Run not found")
    resumed = control.resume()
    return {"runId": run_id, "resumed": resumed, "state": control.state}


@app.delete("/tiktok-scraper/cache", dependencies=[Depends(verify_token)])
async def clear_cache(
    search: Optional[str] = Query(default=None),
    max_count: Optional[int] = Query(default=None, alias="maxCount"),
    service: ScrapeService = Depends(get_service),
) -> dict:
    if search is None:
        return {"removed": service.clear_cache_all()}
    if max_count is None:
        raise HTTPException(status_code=400, detail="maxCount is required with search")
    return {"removed": int(service.clear_cache_entry(search, max_count))}
