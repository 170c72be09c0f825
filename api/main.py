"""FastAPI entrypoint for transaction search endpoints."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from fastapi import FastAPI, Header, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from backend.auth.supabase_auth import UnauthorizedError, get_user_id_from_bearer_token
from backend.factory import build_search_service
from backend.services.search_service import SearchService
from shared import config as _config
from shared.errors import SearchError, SearchErrorCode


logger = logging.getLogger(__name__)


_STATUS_BY_ERROR_CODE = {
    SearchErrorCode.VALIDATION_ERROR: 400,
    SearchErrorCode.NOT_FOUND: 404,
    SearchErrorCode.CONFLICT: 409,
    SearchErrorCode.STORAGE_ERROR: 503,
    SearchErrorCode.TIMEOUT: 504,
}


class SearchPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    query: str | None = None
    filters: dict[str, Any] | None = None
    page: int | str | None = None
    limit: int | str | None = None
    sort: str | None = None
    sortBy: str | None = None


class SaveQueryPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    query: str | None = None
    filters: dict[str, Any] | None = None


@lru_cache(maxsize=1)
def get_search_service() -> SearchService:
    """Create and cache the search service once per process."""

    return build_search_service()


def _extract_bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    prefix = "Bearer "
    if not authorization.startswith(prefix):
        raise HTTPException(status_code=401, detail="Invalid Authorization header")
    token = authorization[len(prefix) :].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    return token


def _resolve_authenticated_user(authorization: str | None) -> str:
    token = _extract_bearer_token(authorization)
    try:
        return get_user_id_from_bearer_token(token)
    except UnauthorizedError as exc:
        raise HTTPException(status_code=401, detail="Unauthorized") from exc


app = FastAPI(title="Expense Search API")

ALLOW_ORIGINS = _config.cors_allow_origins()


@app.middleware("http")
async def log_http_requests(request: Request, call_next):
    """Log incoming requests, HTTP status codes and unexpected errors."""

    logger.info("http_request_received method=%s path=%s", request.method, request.url.path)
    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            "http_request_failed method=%s path=%s",
            request.method,
            request.url.path,
        )
        raise

    logger.info(
        "http_response_sent method=%s path=%s status_code=%s",
        request.method,
        request.url.path,
        response.status_code,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SearchError)
async def handle_search_error(request: Request, exc: SearchError) -> JSONResponse:
    """Map search core errors to HTTP status codes."""

    status_code = _STATUS_BY_ERROR_CODE.get(exc.code, 500)
    if status_code >= 500:
        logger.warning(
            "search_error method=%s path=%s code=%s message=%s",
            request.method,
            request.url.path,
            exc.code.value,
            exc.message,
        )
    return JSONResponse(
        status_code=status_code,
        content={"code": exc.code.value, "detail": exc.message, "details": jsonable_encoder(exc.details)},
    )


@app.exception_handler(Exception)
async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    """Return a JSON 500 response for unhandled exceptions."""

    logger.exception(
        "unhandled_exception method=%s path=%s exception_type=%s message=%s",
        request.method,
        request.url.path,
        type(exc).__name__,
        str(exc),
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


@app.get("/health")
def health() -> dict[str, str]:
    """Healthcheck endpoint."""

    return {"status": "ok"}


@app.post("/search")
def search(payload: SearchPayload, authorization: str | None = Header(default=None)) -> Any:
    """Run a ranked, paginated search over the caller's transactions."""

    user_id = _resolve_authenticated_user(authorization)
    result = get_search_service().search(user_id, payload.model_dump(exclude_none=True))
    return jsonable_encoder(result)


@app.get("/search/quick")
def quick_search(q: str, limit: int = 10, authorization: str | None = Header(default=None)) -> Any:
    user_id = _resolve_authenticated_user(authorization)
    hits = get_search_service().quick_search(user_id, q, limit=limit)
    return jsonable_encoder({"items": hits})


@app.get("/search/suggestions")
def suggestions(q: str, limit: int | None = None, authorization: str | None = Header(default=None)) -> Any:
    user_id = _resolve_authenticated_user(authorization)
    candidates = get_search_service().suggest(user_id, q, limit=limit)
    return jsonable_encoder({"items": candidates})


@app.post("/search/queries", status_code=201)
def save_query(payload: SaveQueryPayload, authorization: str | None = Header(default=None)) -> Any:
    """Save a named query for the caller."""

    user_id = _resolve_authenticated_user(authorization)
    saved_query = get_search_service().save_query(user_id, payload.model_dump())
    return jsonable_encoder(saved_query)


@app.get("/search/queries")
def list_saved_queries(authorization: str | None = Header(default=None)) -> Any:
    user_id = _resolve_authenticated_user(authorization)
    return jsonable_encoder({"items": get_search_service().list_saved_queries(user_id)})


@app.get("/search/queries/{query_id}/run")
def run_saved_query(
    query_id: str,
    page: int = 1,
    limit: int = 20,
    authorization: str | None = Header(default=None),
) -> Any:
    user_id = _resolve_authenticated_user(authorization)
    result = get_search_service().run_saved_query(user_id, query_id, page=page, limit=limit)
    return jsonable_encoder(result)


@app.delete("/search/queries/{query_id}")
def delete_saved_query(query_id: str, authorization: str | None = Header(default=None)) -> Any:
    """Delete a saved query; foreign and unknown ids both answer 404."""

    user_id = _resolve_authenticated_user(authorization)
    if not get_search_service().delete_saved_query(user_id, query_id):
        raise HTTPException(status_code=404, detail="Saved query not found")
    return {"deleted": True}


@app.get("/search/filters/options")
def filter_options(authorization: str | None = Header(default=None)) -> Any:
    user_id = _resolve_authenticated_user(authorization)
    return jsonable_encoder(get_search_service().filter_options(user_id))


@app.get("/search/analytics")
def search_analytics(
    start_date: str | None = None,
    end_date: str | None = None,
    interval: str = "day",
    top_limit: int = 10,
    authorization: str | None = Header(default=None),
) -> Any:
    user_id = _resolve_authenticated_user(authorization)
    analytics = get_search_service().analytics(
        user_id,
        start_date=start_date,
        end_date=end_date,
        interval=interval,
        top_limit=top_limit,
    )
    return jsonable_encoder(analytics)


@app.get("/search/popular")
def popular_queries(limit: int = 10, authorization: str | None = Header(default=None)) -> Any:
    user_id = _resolve_authenticated_user(authorization)
    return jsonable_encoder({"items": get_search_service().popular_queries(user_id, limit=limit)})
