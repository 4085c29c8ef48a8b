"""
Credential store backed by the flat ``credentials`` table.

One row per provider key plus the webhook URL. Values are stored as
entered; there is no encryption and no schema versioning.
"""

import logging
from typing import Dict, Mapping, Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fanaan.database import Credential, async_session
from fanaan.utils.time import utcnow

logger = logging.getLogger(__name__)

WEBHOOK_URL_KEY = "n8nWebhookUrl"
GOOGLE_KEY = "googleApiKey"

# Credential names shown on the API Keys page, with their labels
KNOWN_CREDENTIALS: Dict[str, str] = {
    "openAIKey": "OpenAI",
    "anthropicKey": "Anthropic (Claude)",
    "groqKey": "Groq",
    "deepSeekKey": "DeepSeek",
    "openRouterKey": "OpenRouter",
    "huggingFaceKey": "Hugging Face",
    GOOGLE_KEY: "Google AI (Veo, Imagen)",
    WEBHOOK_URL_KEY: "n8n Webhook URL",
}


def mask_value(value: str) -> str:
    """Show only the last four characters of a secret."""
    if len(value) <= 4:
        return "*" * len(value)
    return "*" * (len(value) - 4) + value[-4:]


class CredentialStore:
    """Async key-value access to stored credentials."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session):
        self._session_factory = session_factory

    async def get_credential(self, name: str) -> Optional[str]:
        async with self._session_factory() as session:
            result = await session.execute(select(Credential).where(Credential.key == name))
            credential = result.scalar_one_or_none()
            return credential.value if credential else None

    async def set_credential(self, name: str, value: str) -> None:
        async with self._session_factory() as session:
            await self._upsert(session, name, value)
            await session.commit()
        logger.info(f"Stored credential '{name}'")

    async def clear_credential(self, name: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(Credential).where(Credential.key == name))
            await session.commit()
        logger.info(f"Cleared credential '{name}'")

    async def all_credentials(self) -> Dict[str, str]:
        async with self._session_factory() as session:
            result = await session.execute(select(Credential))
            return {c.key: c.value for c in result.scalars().all()}

    async def save_many(self, values: Mapping[str, str]) -> None:
        """Save every non-empty value and remove keys submitted empty."""
        async with self._session_factory() as session:
            for name, value in values.items():
                if value:
                    await self._upsert(session, name, value)
                else:
                    await session.execute(delete(Credential).where(Credential.key == name))
            await session.commit()
        logger.info(f"Saved {len(values)} credential field(s)")

    async def clear_all(self) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(Credential))
            await session.commit()
        logger.info("Cleared all credentials")

    @staticmethod
    async def _upsert(session: AsyncSession, name: str, value: str) -> None:
        stmt = sqlite_insert(Credential).values(
            key=name,
            value=value
        ).on_conflict_do_update(
            index_elements=['key'],
            set_={'value': value, 'updated_at': utcnow()}
        )
        await session.execute(stmt)


# Singleton instance
credential_store = CredentialStore()
