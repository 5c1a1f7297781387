from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from marketplace.api.routes import router as api_router
from marketplace.db import Base, engine
from marketplace.errors import MarketplaceError
from marketplace.scheduler import start_scheduler, stop_scheduler
from marketplace.storage import BLOB_BASE_URL, BLOB_ROOT
from marketplace.utils import env_flag, logger
import marketplace.models  # noqa: F401 ensure models are imported so tables are known

# create FastAPI instance
app = FastAPI(title="Classifieds moderation")
app.include_router(api_router)
# local blob store is served from the same process unless URLs point elsewhere
if BLOB_BASE_URL.startswith("/"):
    app.mount(BLOB_BASE_URL, StaticFiles(directory=BLOB_ROOT, check_dir=False), name="media")


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.on_event("startup")
async def on_startup_create_tables():
    # Ensure database tables are created on startup
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    if env_flag("CLEANUP_SCHEDULER", "1"):
        start_scheduler()


@app.on_event("shutdown")
async def on_shutdown():
    stop_scheduler()
