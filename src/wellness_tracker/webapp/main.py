from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from wellness_tracker import __version__
from wellness_tracker.db.migrate import init_db
from wellness_tracker.exceptions import WellnessError
from wellness_tracker.logging_config import get_logger
from wellness_tracker.webapp import api as apimod

logger = get_logger('api', 'api')


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Schema + duplicate reconciliation; reconciliation failures only warn
    init_db(apimod.DB_PATH)
    yield


app = FastAPI(title="Wellness Tracker API", version=__version__, lifespan=lifespan)


@app.exception_handler(WellnessError)
async def handle_wellness_error(request: Request, exc: WellnessError):
    logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.details)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path"))
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return JSONResponse(status_code=400, content={"error": "Validation error", "details": "; ".join(problems)})


app.include_router(apimod.api)
app.include_router(apimod.admin_api)
