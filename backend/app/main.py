import logging
from typing import Awaitable, Callable

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse

from .domain.errors import ConfigError, GridError, InvalidDate, MissingServiceMapping, UpstreamUnavailable
from .routers import debug, grid, upstream
from .utils.request_id import REQUEST_ID_HEADER, resolve_request_id, set_request_id

logger = logging.getLogger(__name__)

app = FastAPI(title="Room Availability API")


async def request_id_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
    set_request_id(request_id)
    try:
        response = await call_next(request)
    finally:
        set_request_id(None)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


app.middleware("http")(request_id_middleware)


def grid_error_response(exc: GridError) -> JSONResponse:
    if isinstance(exc, InvalidDate):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})
    if isinstance(exc, UpstreamUnavailable):
        logger.warning("upstream unavailable for %s/%s: %s", exc.service_id, exc.room_id, exc)
        content = {
            "error": str(exc),
            "service_id": exc.service_id,
            "room_id": exc.room_id,
            "upstream_status": exc.status,
            "upstream": exc.details,
        }
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=content)
    if isinstance(exc, (ConfigError, MissingServiceMapping)):
        logger.error("configuration error: %s", exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": str(exc)})


@app.exception_handler(GridError)
async def handle_grid_error(request: Request, exc: GridError) -> JSONResponse:
    return grid_error_response(exc)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(grid.router)
app.include_router(upstream.router)
app.include_router(debug.router)
