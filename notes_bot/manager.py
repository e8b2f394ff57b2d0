from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

from .models import ErrorKind, Failure, Note, OperationResult, Success
from .note_store import NoteStore
from .session import Session, SessionProvider

if TYPE_CHECKING:
    from .state import Draft

logger = logging.getLogger(__name__)

EMPTY_TEXT_MESSAGE = "Note text cannot be empty"
NO_SESSION_MESSAGE = "You are not signed in"


@dataclass(frozen=True)
class NoteState:
    """Снимок состояния для слоя отображения. Изменять нечего: всё frozen."""

    notes: tuple[Note, ...] = ()
    loading: bool = False
    error: str | None = None


StateListener = Callable[[NoteState], None]


# Сообщения для _apply: каждое описывает, как согласовать результат с локальным списком.
@dataclass(frozen=True)
class _LoadStarted:
    epoch: int
    seq: int


@dataclass(frozen=True)
class _LoadFinished:
    epoch: int
    seq: int
    owner_id: str
    result: OperationResult[list[Note]]


@dataclass(frozen=True)
class _NoteCreated:
    epoch: int
    note: Note


@dataclass(frozen=True)
class _NoteUpdated:
    epoch: int
    note_id: str
    text: str


@dataclass(frozen=True)
class _NoteDeleted:
    epoch: int
    note_id: str


@dataclass(frozen=True)
class _OperationFailed:
    epoch: int
    failure: Failure


@dataclass(frozen=True)
class _SessionReset:
    owner_id: str | None


_Message = Union[
    _LoadStarted, _LoadFinished, _NoteCreated, _NoteUpdated, _NoteDeleted, _OperationFailed, _SessionReset
]


class NoteStateManager:
    """
    Держит упорядоченный список заметок текущей сессии и согласует его с удалённым хранилищем.

    Все изменения состояния проходят через синхронный _apply: event loop однопоточный,
    а _apply ничего не ждёт, поэтому результаты применяются по одному в порядке прихода.
    Публичные операции не бросают исключений, исход виден по OperationResult и по `error`.
    """

    def __init__(
        self,
        store: NoteStore,
        session_provider: SessionProvider | None = None,
        request_timeout: float = 15.0,
        keep_draft_on_failure: bool = False,
    ) -> None:
        self.store = store
        self.request_timeout = request_timeout
        self.keep_draft_on_failure = keep_draft_on_failure

        self._notes: list[Note] = []
        self._loading = False
        self._error: str | None = None

        self._owner_id: str | None = None
        self._synced_owner: str | None = None
        # epoch растёт при смене владельца, load_seq — при каждом load
        self._epoch = 0
        self._load_seq = 0

        self._listeners: list[StateListener] = []
        self._session_provider: SessionProvider | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

        if session_provider is not None:
            self.bind(session_provider)

    # --- read side ---

    @property
    def state(self) -> NoteState:
        return NoteState(notes=tuple(self._notes), loading=self._loading, error=self._error)

    @property
    def notes(self) -> tuple[Note, ...]:
        return tuple(self._notes)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def owner_id(self) -> str | None:
        return self._owner_id

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.error("State listener failed", exc_info=True)

    # --- session ---

    def bind(self, session_provider: SessionProvider) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._session_provider = session_provider
        self._unsubscribe = session_provider.subscribe(self._on_session_change)
        self._on_session_change(session_provider.session)

    def _on_session_change(self, session: Session) -> None:
        if session.owner_id != self._owner_id:
            self._switch_owner(session.owner_id)

        if session.ready and self._synced_owner != session.owner_id:
            self._schedule_load(session.owner_id)

    def _switch_owner(self, owner_id: str | None) -> None:
        logger.info(f"Owner changed: {self._owner_id} -> {owner_id}, clearing notes")
        self._epoch += 1
        self._apply(_SessionReset(owner_id=owner_id))

    def _schedule_load(self, owner_id: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop, load for {owner_id} has to be requested explicitly")
            return

        task = loop.create_task(self._auto_load(owner_id, self._epoch))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _auto_load(self, owner_id: str, epoch: int) -> None:
        # Пока задача ждала запуска, сессия могла смениться: тогда загрузка уже не нужна
        session = self._session_provider.session if self._session_provider is not None else None
        if epoch != self._epoch or (session is not None and not session.ready):
            logger.debug(f"Skipping scheduled load for {owner_id}: session changed")
            return
        await self.load(owner_id)

    def _guard(self, owner_id: str | None = None) -> Failure | None:
        if self._session_provider is None:
            return None

        session = self._session_provider.session
        if not session.ready:
            return Failure(NO_SESSION_MESSAGE, ErrorKind.NO_SESSION)
        if owner_id is not None and owner_id != session.owner_id:
            return Failure("Owner does not match the active session", ErrorKind.NO_SESSION)
        return None

    @property
    def synced(self) -> bool:
        return self._owner_id is not None and self._synced_owner == self._owner_id

    async def settle(self) -> None:
        """Дождаться загрузок, запущенных из-за смены сессии."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._session_provider = None
        await self.settle()

    # --- store calls ---

    async def _call_store(
        self, op: str, call: Callable[[], Awaitable[OperationResult[Any]]]
    ) -> OperationResult[Any]:
        try:
            return await asyncio.wait_for(call(), timeout=self.request_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{op}: no answer from note store in {self.request_timeout:g}s")
            return Failure(f"Note store did not respond in {self.request_timeout:g}s", ErrorKind.TIMEOUT)
        except Exception as e:
            logger.error(f"{op}: note store raised {type(e).__name__}", exc_info=True)
            return Failure(f"Unexpected error during {op}: {e}", ErrorKind.REMOTE)

    def _reject(self, failure: Failure) -> Failure:
        self._apply(_OperationFailed(epoch=self._epoch, failure=failure))
        return failure

    # --- commands ---

    async def load(self, owner_id: str) -> OperationResult[list[Note]]:
        if not owner_id:
            return self._reject(Failure("owner_id must not be empty", ErrorKind.VALIDATION))

        denied = self._guard(owner_id)
        if denied is not None:
            return self._reject(denied)

        if owner_id != self._owner_id:
            self._switch_owner(owner_id)

        self._load_seq += 1
        seq, epoch = self._load_seq, self._epoch
        self._apply(_LoadStarted(epoch=epoch, seq=seq))

        result = await self._call_store("list", lambda: self.store.list_notes(owner_id))
        self._apply(_LoadFinished(epoch=epoch, seq=seq, owner_id=owner_id, result=result))
        return result

    async def add_note(self, owner_id: str, text: str, draft: Draft | None = None) -> OperationResult[Note | None]:
        # Пустой текст молча игнорируем, как и раньше
        if not text or not text.strip():
            return Success(None)

        result: OperationResult[Note]
        denied = self._guard(owner_id)
        if denied is not None:
            result = self._reject(denied)
        else:
            if owner_id != self._owner_id:
                self._switch_owner(owner_id)

            epoch = self._epoch
            result = await self._call_store("create", lambda: self.store.create_note(owner_id, text))
            if isinstance(result, Success) and result.value.owner_id != owner_id:
                logger.warning(f"Created note {result.value.id} belongs to {result.value.owner_id}, not {owner_id}")
                result = Failure("Created note belongs to another owner", ErrorKind.REMOTE)
            if isinstance(result, Success):
                self._apply(_NoteCreated(epoch=epoch, note=result.value))
            else:
                self._apply(_OperationFailed(epoch=epoch, failure=result))

        # Черновик закрываем в любом случае, если не попросили сохранять его при ошибке
        if draft is not None and (result.ok or not self.keep_draft_on_failure):
            draft.clear()

        return result

    async def edit_note(self, note_id: str, text: str) -> OperationResult[Note]:
        if not text or not text.strip():
            return self._reject(Failure(EMPTY_TEXT_MESSAGE, ErrorKind.VALIDATION))

        denied = self._guard()
        if denied is not None:
            return self._reject(denied)

        epoch = self._epoch
        result = await self._call_store("update", lambda: self.store.update_note(note_id, text))
        if isinstance(result, Success):
            self._apply(_NoteUpdated(epoch=epoch, note_id=note_id, text=result.value.text))
        else:
            self._apply(_OperationFailed(epoch=epoch, failure=result))
        return result

    async def delete_note(self, note_id: str) -> OperationResult[None]:
        denied = self._guard()
        if denied is not None:
            return self._reject(denied)

        epoch = self._epoch
        result = await self._call_store("delete", lambda: self.store.delete_note(note_id))
        if isinstance(result, Success):
            self._apply(_NoteDeleted(epoch=epoch, note_id=note_id))
        else:
            self._apply(_OperationFailed(epoch=epoch, failure=result))
        return result

    # --- reconciliation ---

    def _apply(self, msg: _Message) -> None:
        if isinstance(msg, _SessionReset):
            self._owner_id = msg.owner_id
            self._synced_owner = None
            self._notes = []
            self._loading = False
            self._error = None
            self._notify()
            return

        if msg.epoch != self._epoch:
            logger.debug(f"Dropping {type(msg).__name__} from a previous session")
            return

        if isinstance(msg, _LoadStarted):
            self._loading = True

        elif isinstance(msg, _LoadFinished):
            if msg.seq != self._load_seq:
                logger.debug(f"Dropping stale load #{msg.seq}, latest is #{self._load_seq}")
                return
            self._loading = False
            if isinstance(msg.result, Success):
                self._notes = self._sanitize(msg.owner_id, msg.result.value)
                self._synced_owner = msg.owner_id
                self._error = None
            else:
                logger.warning(f"Failed to load notes: {msg.result.message}")
                self._error = msg.result.message

        elif isinstance(msg, _NoteCreated):
            index = self._index_of(msg.note.id)
            if index is None:
                self._notes.append(msg.note)
            else:
                self._notes[index] = msg.note
            self._error = None

        elif isinstance(msg, _NoteUpdated):
            index = self._index_of(msg.note_id)
            if index is None:
                logger.debug(f"Updated note {msg.note_id} is not in the local list")
            else:
                self._notes[index] = self._notes[index].with_text(msg.text)
            self._error = None

        elif isinstance(msg, _NoteDeleted):
            index = self._index_of(msg.note_id)
            if index is None:
                logger.debug(f"Deleted note {msg.note_id} is not in the local list")
            else:
                del self._notes[index]
            self._error = None

        elif isinstance(msg, _OperationFailed):
            logger.warning(f"Operation failed ({msg.failure.kind.value}): {msg.failure.message}")
            self._error = msg.failure.message

        self._notify()

    def _index_of(self, note_id: str) -> int | None:
        for i, note in enumerate(self._notes):
            if note.id == note_id:
                return i
        return None

    @staticmethod
    def _sanitize(owner_id: str, notes: list[Note]) -> list[Note]:
        seen: set[str] = set()
        result: list[Note] = []
        for note in notes:
            if note.owner_id != owner_id:
                logger.warning(f"Skipping note {note.id}: owner {note.owner_id} != {owner_id}")
                continue
            if note.id in seen:
                logger.warning(f"Skipping duplicate note id {note.id}")
                continue
            seen.add(note.id)
            result.append(note)
        return result
