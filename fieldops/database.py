from sqlalchemy import create_engine, Boolean, Column, DateTime, JSON, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from dotenv import load_dotenv

from fieldops.core.config import settings
from fieldops.core.logging_config import logger

# Load environment variables
load_dotenv()

DATABASE_URL = settings.DATABASE_URL

if settings.is_sqlite:
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        echo=False,
        future=True,
    )
else:
    engine = create_engine(
        DATABASE_URL,
        pool_pre_ping=True,      # Test connections before using
        pool_size=10,            # Base connection pool size
        max_overflow=20,         # Max connections beyond pool_size
        pool_timeout=30,         # Timeout for getting connection (seconds)
        pool_recycle=3600,       # Recycle connections after 1 hour
        echo=False,
        future=True,
    )

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)

logger.info(f"Database engine configured ({engine.dialect.name})")

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass

class TimestampMixin:
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

class SoftDeleteMixin:
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
