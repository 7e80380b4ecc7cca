from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import os
import logging

load_dotenv()

from config.config_database import engine, Base
from models import (  # noqa: F401  (table registration)
    user,
    question,
    answer,
    question_message,
    question_watcher,
    notification,
    push_token,
    question_view,
    answer_vote
)
from routers import (
    admin_question_controller,
    notification_controller,
    question_controller,
    realtime_controller
)
from services.connection_gateway import get_gateway
from services.push_provider import get_push_provider
from utils.errors import AppError, app_error_handler

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

# ===================== CONFIG APP =====================
app = FastAPI(
    title="Q&A Portal Realtime API",
    version="1.0.0",
    description="Live events, notification fan-out, push tokens and interaction counters for the Q&A portal"
)


# ===================== STARTUP =====================
@app.on_event("startup")
async def startup_event():
    Base.metadata.create_all(bind=engine)
    logger.info(f"✅ Database tables initialized: {list(Base.metadata.tables.keys())}")

    try:
        await get_gateway().start()
        logger.info("✅ Connection gateway started")
    except Exception as e:
        # Without the shared backbone events only reach sessions on this instance
        logger.error(f"❌ Error starting connection gateway backbone: {e}", exc_info=True)

    logger.info("🚀 Q&A realtime service is ready!")


# ===================== SHUTDOWN =====================
@app.on_event("shutdown")
async def shutdown_event():
    logger.info("🛑 Shutting down Q&A realtime service...")

    try:
        await get_gateway().stop()
        logger.info("✅ Connection gateway stopped")
    except Exception as e:
        logger.warning(f"⚠️ Error stopping connection gateway: {e}")

    get_push_provider().close()
    logger.info("✅ Shutdown complete")


# ===================== MIDDLEWARE =====================
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(AppError, app_error_handler)

# ===================== ROUTERS =====================
app.include_router(notification_controller.router)
app.include_router(question_controller.router)
app.include_router(admin_question_controller.router)
app.include_router(realtime_controller.router)


@app.get("/health", tags=["Health"])
async def health():
    gateway = get_gateway()
    return {
        "status": "ok",
        "sessions": gateway.session_count(),
        "rooms": gateway.room_count(),
    }


# ===================== RUN =====================
HOST = os.getenv("SERVER_HOST", "127.0.0.1")
PORT = int(os.getenv("SERVER_PORT", 8000))
RELOAD = os.getenv("SERVER_RELOAD", "False").lower() == "true"

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=HOST, port=PORT, reload=RELOAD)
