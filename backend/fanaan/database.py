import os

from fanaan.config import settings
from fanaan.utils.time import utcnow

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

# Database path - use data directory for persistence
DATA_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data")


def _database_url() -> str:
    if settings.database_url:
        return settings.database_url
    os.makedirs(DATA_DIR, exist_ok=True)
    return f"sqlite+aiosqlite:///{os.path.join(DATA_DIR, 'fanaan.db')}"


DATABASE_URL = _database_url()

# Create async engine
engine = create_async_engine(DATABASE_URL, echo=False)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class Credential(Base):
    """A stored provider API key or the webhook URL, keyed by form input id."""

    __tablename__ = "credentials"

    key = Column(String(100), primary_key=True)  # e.g., "groqKey", "n8nWebhookUrl"
    value = Column(Text, nullable=False)  # Stored as entered, no encryption
    updated_at = Column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self):
        return f"<Credential(key='{self.key}')>"


async def init_db():
    """Initialize the database, creating all tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
