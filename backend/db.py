import logging
import os

from sqlmodel import Session, SQLModel, create_engine

logger = logging.getLogger(__name__)

PRODUCTION_ENVS = ("prod", "production")


def resolve_database_url() -> str:
    """DATABASE_URL if set, else a local SQLite file outside production."""
    url = os.getenv("DATABASE_URL")
    if not url:
        env = os.getenv("ENV", os.getenv("RENDER", "").lower() or "dev")
        if env in PRODUCTION_ENVS or os.getenv("RENDER"):
            raise RuntimeError("DATABASE_URL is required in production; SQLite is for local use only")
        url = f"sqlite:///{os.getenv('DATABASE_PATH', './carelog.db')}"

    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


DATABASE_URL = resolve_database_url()
db_driver = DATABASE_URL.split(":", 1)[0]
logger.info(f"DB_URL_DRIVER={db_driver}")

# Request handlers and the lifespan hook share connections across threads
connect_args = {"check_same_thread": False} if db_driver.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args)


def create_db_and_tables():
    """Create any missing care-log tables; existing rows are left alone."""
    import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session
