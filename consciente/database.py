from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from consciente.config import get_settings

settings = get_settings()

_engine_kwargs = {"pool_pre_ping": True}
if settings.database_url.startswith("sqlite"):
    _engine_kwargs = {"connect_args": {"check_same_thread": False}}

engine = create_engine(settings.database_url, **_engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables() -> None:
    """Create missing tables. Schema migrations are managed outside the service."""
    import consciente.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
