# subdesk/main.py
import os

from dotenv import load_dotenv

# Load .env BEFORE anything reads settings
load_dotenv()

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .core.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(levelname)s - [%(name)s] - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("subdesk")

from .api.auth import main as auth_main_api
from .api.clients import main as clients_main_api
from .api.dashboard import main as dashboard_main_api
from .api.email import main as email_main_api
from .api.invoices import main as invoices_main_api
from .api.subscriptions import main as subscriptions_main_api
from .core.errors import register_exception_handlers
from .db.engine import create_db_and_tables
from .db.engine_sync import create_sync_db_and_tables, new_session
from .scheduler import scheduler, shutdown_scheduler, start_scheduler
from .services.mail_queue import mail_queue
from .services.reminder_service import ReminderService

app = FastAPI(title="subdesk", version="1.0.0")


# --- Startup / Shutdown ---
@app.on_event("startup")
async def on_startup():
    """Create tables, seed reminder templates and start background workers."""
    await create_db_and_tables()
    create_sync_db_and_tables()
    with new_session() as session:
        ReminderService(session).seed_default_templates()
    logger.info("Database tables initialized")

    mail_queue.start()
    if settings.scheduler_enabled:
        start_scheduler()
    else:
        logger.info("Scheduler disabled (SCHEDULER_ENABLED=false)")


@app.on_event("shutdown")
def on_shutdown():
    shutdown_scheduler()
    mail_queue.stop()


# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# --- Uploaded client images ---
os.makedirs(settings.upload_dir, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")

# --- Routers ---
app.include_router(auth_main_api.router, tags=["Auth"])
app.include_router(clients_main_api.router, tags=["Clients"])
app.include_router(subscriptions_main_api.router, tags=["Subscriptions"])
app.include_router(invoices_main_api.router, tags=["Invoices"])
app.include_router(dashboard_main_api.router, tags=["Dashboard"])
app.include_router(email_main_api.router, tags=["Email"])


@app.get("/health", tags=["System"])
def get_system_health():
    """Liveness probe with the state of the background workers."""
    return {
        "status": "ok",
        "scheduler": "running" if scheduler.running else "stopped",
        "mail_queue_pending": mail_queue.pending,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("subdesk.main:app", host="0.0.0.0", port=settings.port)
