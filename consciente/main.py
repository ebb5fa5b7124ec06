from fastapi import Depends, FastAPI
from sqlalchemy.orm import Session

from consciente.config import Settings, get_settings
from consciente.database import SessionLocal, create_tables, get_db
from consciente.logging_config import get_logger, setup_logging
from consciente.models import Booking, Contact, Conversation, Message
from consciente.routers import admin, webhook
from consciente.services.contact_locks import ContactLocks
from consciente.services.llm import OpenAIProvider
from consciente.services.orchestrator import DialogueOrchestrator
from consciente.services.waha_service import WahaClient

settings = get_settings()
setup_logging(settings.log_level)

logger = get_logger("main")

app = FastAPI(
    title="Consciente API",
    description="WhatsApp sales assistant for ser-consciente.org",
    version="0.1.0",
)

app.include_router(webhook.router)
app.include_router(admin.router)


def build_orchestrator(settings: Settings) -> DialogueOrchestrator:
    llm = OpenAIProvider(
        api_key=settings.openai_api_key,
        default_model=settings.llm_model,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.llm_timeout_seconds,
    )
    gateway = WahaClient(
        base_url=settings.waha_api_url,
        api_key=settings.waha_api_key,
        session=settings.waha_session,
        timeout_seconds=settings.gateway_timeout_seconds,
    )
    return DialogueOrchestrator(
        session_factory=SessionLocal,
        llm=llm,
        gateway=gateway,
        settings=settings,
        locks=ContactLocks(),
    )


@app.on_event("startup")
async def startup() -> None:
    if settings.auto_create_tables:
        create_tables()
        logger.info("Database tables ensured")
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set, model calls will fail")
    app.state.orchestrator = build_orchestrator(settings)
    logger.info(
        "Consciente API started",
        extra={"context": {"llm_model": settings.llm_model, "waha_session": settings.waha_session}},
    )


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    return {
        "status": "ok",
        "contacts": db.query(Contact).count(),
        "conversations": db.query(Conversation).count(),
        "messages": db.query(Message).count(),
        "bookings": db.query(Booking).count(),
    }
