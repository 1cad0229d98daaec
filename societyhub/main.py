from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from .core.config import settings
from .core.firebase_init import get_firebase_status
from .core.scheduler import start_scheduler, stop_scheduler
from .database.store_factory import get_store
from .routers import billing, documents, live, polls, records

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="SocietyHub API",
    description="Residential society management: live records, forms, billing and polls",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Adjust as needed for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Start the bill auto-generation scheduler on app startup"""
    logger.info("🚀 FastAPI startup event triggered")
    start_scheduler()


@app.on_event("shutdown")
async def shutdown_event():
    """Stop scheduler on app shutdown"""
    logger.info("⛔ FastAPI shutdown event triggered")
    stop_scheduler()


for module in (records, live, polls, billing, documents):
    app.include_router(module.router)
    logger.info(f"✅ Included router {module.router.prefix}")


@app.get("/")
async def root():
    return {
        "message": "Welcome to the SocietyHub API",
        "firebase_status": get_firebase_status(),
    }


@app.get("/health")
async def health_check():
    store = get_store()
    return {
        "status": "healthy",
        "firebase_available": get_firebase_status()['available'],
        "store": type(store).__name__,
        "active_subscriptions": getattr(store, "active_subscriptions", None),
    }
