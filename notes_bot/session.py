from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    owner_id: str | None = None
    loading: bool = False

    @property
    def ready(self) -> bool:
        return not self.loading and bool(self.owner_id)


SessionListener = Callable[[Session], None]


class SessionProvider:
    """
    Источник текущей сессии: кто владелец заметок и готова ли сессия.
    Сам вход (рукопожатие с auth-сервисом) сюда не входит.
    """

    def __init__(self, owner_id: str | None = None, loading: bool = False) -> None:
        if owner_id is not None and not owner_id:
            raise ValueError("owner_id must not be empty")
        self._session = Session(owner_id=owner_id, loading=loading)
        self._listeners: list[SessionListener] = []

    @property
    def session(self) -> Session:
        return self._session

    @property
    def current_owner_id(self) -> str | None:
        return self._session.owner_id

    @property
    def session_loading(self) -> bool:
        return self._session.loading

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, session: Session) -> None:
        if session == self._session:
            return
        self._session = session
        logger.debug(f"Session changed: owner={session.owner_id} loading={session.loading}")
        for listener in list(self._listeners):
            listener(session)

    def begin_loading(self) -> None:
        self._set(Session(owner_id=self._session.owner_id, loading=True))

    def sign_in(self, owner_id: str) -> None:
        if not owner_id:
            raise ValueError("owner_id must not be empty")
        self._set(Session(owner_id=owner_id, loading=False))

    def sign_out(self) -> None:
        self._set(Session(owner_id=None, loading=False))
