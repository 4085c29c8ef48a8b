"""
Session-scoped key selection for the Google pages (Veo, Imagen).

A browser session has to pick a Google key before those forms are shown.
The choice lives on a KeySelection object owned by that session and passed
into each submission; nothing about it is module state.
"""

import logging
from collections import OrderedDict
from typing import Optional

from fanaan.config import settings
from fanaan.services.credentials import GOOGLE_KEY, CredentialStore

logger = logging.getLogger(__name__)

SESSION_COOKIE = "fanaan_session"


class KeySelection:
    """Whether this session has selected a Google key."""

    def __init__(self, credentials: CredentialStore):
        self._credentials = credentials
        self.selected = False

    async def has_selected_key(self) -> bool:
        """True once selected in this session, or when a stored key exists."""
        if not self.selected and await self._credentials.get_credential(GOOGLE_KEY):
            self.selected = True
        return self.selected

    async def select(self, api_key: Optional[str] = None) -> None:
        if api_key:
            await self._credentials.set_credential(GOOGLE_KEY, api_key)
        self.selected = True

    def reset(self) -> None:
        """Forget the selection so the key prompt is shown again."""
        self.selected = False


class SessionRegistry:
    """KeySelection per browser session id, bounded to the most recent sessions.

    An evicted session simply starts over with no selected key.
    """

    def __init__(self, credentials: CredentialStore, max_size: Optional[int] = None):
        self._credentials = credentials
        self.max_size = max_size or settings.session_cache_size
        self._sessions: OrderedDict[str, KeySelection] = OrderedDict()

    def get(self, session_id: str) -> KeySelection:
        selection = self._sessions.get(session_id)
        if selection is not None:
            self._sessions.move_to_end(session_id)
            return selection

        logger.debug(f"New dashboard session {session_id[:8]}...")
        selection = self._sessions[session_id] = KeySelection(self._credentials)
        while len(self._sessions) > self.max_size:
            self._sessions.popitem(last=False)
        return selection

    def __len__(self) -> int:
        return len(self._sessions)


def _build_default_sessions() -> SessionRegistry:
    from fanaan.services.credentials import credential_store

    return SessionRegistry(credential_store)


# Singleton instance
session_registry = _build_default_sessions()
