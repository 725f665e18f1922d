import logging

from fastapi import FastAPI

from inventory_sync.api.router import api_router
from inventory_sync.config import load_settings
from inventory_sync.exceptions import ConfigError
from inventory_sync.services.scheduler import start_scheduler

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Square → Shopify Inventory Sync")


@app.on_event("startup")
async def startup_event():
    try:
        settings = load_settings()
    except ConfigError as e:
        logger.error(f"Scheduler not started: {e}")
        return
    if settings.SCHEDULER_ENABLED:
        app.state.scheduler = start_scheduler(settings)


@app.on_event("shutdown")
async def shutdown_event():
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler:
        scheduler.shutdown(wait=False)


app.include_router(api_router)


@app.get("/")
def root():
    return {"status": "running", "message": "Square → Shopify Inventory Sync"}


@app.get("/health")
def health_check():
    return {"status": "healthy"}
