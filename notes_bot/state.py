from __future__ import annotations

import logging
from dataclasses import dataclass

from .config import KEEP_DRAFT_ON_FAILURE, NOTES_REQUEST_TIMEOUT
from .manager import NoteStateManager
from .note_store import NoteStore, NoteStoreClient
from .session import SessionProvider

logger = logging.getLogger(__name__)


@dataclass
class Draft:
    """Текст новой заметки, который пользователь ещё не отправил, и признак открытого ввода."""

    text: str = ""
    open: bool = False

    def open_(self) -> None:
        self.open = True

    def clear(self) -> None:
        self.text = ""
        self.open = False


# Простейшее in‑memory состояние: user_id -> Draft / NoteStateManager
USER_DRAFTS: dict[int, Draft] = {}
USER_MANAGERS: dict[int, NoteStateManager] = {}

# Клиент хранилища создаётся один раз, при первом обращении
_note_store: NoteStore | None = None


def get_note_store() -> NoteStore:
    global _note_store
    if _note_store is None:
        _note_store = NoteStoreClient()
    return _note_store


def set_note_store(store: NoteStore | None) -> None:
    global _note_store
    _note_store = store


def get_draft(user_id: int) -> Draft:
    return USER_DRAFTS.setdefault(user_id, Draft())


def get_manager(user_id: int) -> NoteStateManager:
    manager = USER_MANAGERS.get(user_id)
    if manager is None:
        # В боте сессия готова сразу: владелец заметок — сам пользователь Telegram
        session = SessionProvider(owner_id=str(user_id))
        manager = NoteStateManager(
            get_note_store(),
            session_provider=session,
            request_timeout=NOTES_REQUEST_TIMEOUT,
            keep_draft_on_failure=KEEP_DRAFT_ON_FAILURE,
        )
        USER_MANAGERS[user_id] = manager
        logger.info(f"Created note manager for user {user_id}")
    return manager

