import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from taskboard.core import database
from taskboard.core.config import settings
from taskboard.core.websocket import ConnectionManager
from taskboard.routers import auth, events, tasks

logger = logging.getLogger(__name__)

app = FastAPI(title="Taskboard API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(tasks.router)
app.include_router(events.router)

app.state.connections = ConnectionManager(
    redis_url=settings.REDIS_URL,
    channel=settings.REDIS_CHANNEL,
    scope=settings.BROADCAST_SCOPE,
)

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", [])[1:]) or "body"
        message = f"Invalid {field}: {first.get('msg')}"
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"message": message})

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})

@app.on_event("startup")
async def startup():
    await database.init_models()
    await app.state.connections.start()

@app.on_event("shutdown")
async def shutdown():
    await app.state.connections.stop()

@app.get("/")
async def root():
    return {"message": "Taskboard API is running"}

def run():
    import uvicorn
    from taskboard.logging_setup import setup_logging

    setup_logging(settings.LOG_LEVEL)
    uvicorn.run("taskboard.main:app", host="0.0.0.0", port=settings.API_PORT)

if __name__ == "__main__":
    run()
