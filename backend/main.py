from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy import text

from api.v1 import auth, users, shares, iso, shortlist, bids
from core.config import settings
from core.exceptions import AuthException
from db.base import initialize_database
from db.session import engine, SessionLocal
from utils.logging_config import configure_logging, RequestContextMiddleware, REQUEST_ID_HEADER
from utils.rate_limit import limiter
from utils.responses import error_json

logger = configure_logging("harvex")

ROUTERS = (
    (auth.router, "Authentication"),
    (users.router, "Users"),
    # public share routes must not be shadowed by /api/shares/{share_id}
    (shares.public_router, "Shares"),
    (shares.router, "Shares"),
    (iso.router, "ISO"),
    (shortlist.router, "Shortlist"),
    (bids.router, "Bids"),
)

app = FastAPI(title=settings.APP_NAME, version=settings.VERSION, debug=settings.DEBUG)
app.state.limiter = limiter


@app.exception_handler(AuthException)
async def auth_exception_handler(request: Request, exc: AuthException):
    logger.info(f"Auth failure at {request.url.path}: {exc.message}")
    return error_json(exc.message, exc.status_code)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error at {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(RequestContextMiddleware)
# allow_credentials so browsers send the refresh cookie cross-origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER],
)

for router, tag in ROUTERS:
    app.include_router(router, tags=[tag])


@app.on_event("startup")
async def on_startup():
    if settings.uses_dev_secrets:
        log = logger.error if settings.is_production else logger.warning
        log("JWT secrets are development defaults; set JWT_SECRET and JWT_REFRESH_SECRET")
    try:
        await initialize_database()
    except Exception as e:
        logger.warning(f"SQL init skipped or failed: {e}")
    logger.info(f"{settings.APP_NAME} {settings.VERSION} started ({settings.ENVIRONMENT})")


@app.on_event("shutdown")
async def on_shutdown():
    await engine.dispose()
    logger.info("Disposed SQL engine")


async def _database_reachable() -> bool:
    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Health SQL check failed: {e}")
        return False


@app.get("/")
async def root():
    return {"message": settings.APP_NAME, "version": settings.VERSION}


@app.get("/health")
async def health_check():
    if await _database_reachable():
        return {"status": "healthy", "database": "sql_connected"}
    return {"status": "degraded", "database": "sql_unavailable"}
