import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core.config import API_PREFIX, LOG_LEVEL
from core.database import init_db
from core.errors import DangerZoneError, InvalidArgument
from web.router_points import router as points_router
from web.router_zones import router as zones_router

app = FastAPI(title="Danger Zones")
logger = logging.getLogger("uvicorn.error")
logging.getLogger("core").setLevel(LOG_LEVEL)

app.include_router(points_router, prefix=API_PREFIX)
app.include_router(zones_router, prefix=API_PREFIX)
init_db()


def _error_response(exc: DangerZoneError, details=None):
    error = exc.to_dict()
    if details:
        error["details"] = details
    return JSONResponse({"success": False, "error": error}, status_code=exc.status_code)


@app.exception_handler(DangerZoneError)
async def handle_domain_error(request: Request, exc: DangerZoneError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.kind)
    else:
        logger.warning("%s %s rejected: %s (%s)", request.method, request.url.path, exc.kind, exc.message)
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    details = [
        {"path": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg", "")}
        for err in jsonable_encoder(exc.errors())
    ]
    logger.warning("%s %s rejected: validation error %s", request.method, request.url.path, details)
    return _error_response(InvalidArgument("Validation Error"), details)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get(f"{API_PREFIX}/health")
def api_health():
    return {"status": "ok"}
