"""Shared fixtures for note manager tests."""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest

from notes_bot.manager import NoteStateManager
from notes_bot.models import ErrorKind, Failure, Note, Success


class FakeNoteStore:
    """In-memory note store answering immediately."""

    def __init__(self, notes: list[Note] | None = None):
        self.notes: list[Note] = list(notes or [])
        self.calls: list[tuple[Any, ...]] = []
        self.failures: dict[str, Failure] = {}
        self._next_id = 100

    def fail(self, op: str, message: str = "server error", kind: ErrorKind = ErrorKind.REMOTE):
        self.failures[op] = Failure(message, kind)

    async def list_notes(self, owner_id):
        self.calls.append(("list", owner_id))
        if "list" in self.failures:
            return self.failures["list"]
        return Success([n for n in self.notes if n.owner_id == owner_id])

    async def create_note(self, owner_id, text):
        self.calls.append(("create", owner_id, text))
        if "create" in self.failures:
            return self.failures["create"]
        self._next_id += 1
        note = Note(id=str(self._next_id), owner_id=owner_id, text=text)
        self.notes.append(note)
        return Success(note)

    async def update_note(self, note_id, text):
        self.calls.append(("update", note_id, text))
        if "update" in self.failures:
            return self.failures["update"]
        for i, note in enumerate(self.notes):
            if note.id == note_id:
                self.notes[i] = note.with_text(text)
                return Success(self.notes[i])
        # the store accepts updates for notes the client never listed
        return Success(Note(id=note_id, owner_id="someone", text=text))

    async def delete_note(self, note_id):
        self.calls.append(("delete", note_id))
        if "delete" in self.failures:
            return self.failures["delete"]
        self.notes = [n for n in self.notes if n.id != note_id]
        return Success(None)


@dataclass
class PendingCall:
    op: str
    args: tuple[Any, ...]
    future: asyncio.Future = field(repr=False)

    def resolve(self, result):
        self.future.set_result(result)


class ControlledNoteStore:
    """Note store whose calls stay pending until the test resolves them."""

    def __init__(self):
        self.pending: list[PendingCall] = []

    async def _call(self, op, *args):
        call = PendingCall(op, args, asyncio.get_running_loop().create_future())
        self.pending.append(call)
        return await call.future

    async def list_notes(self, owner_id):
        return await self._call("list", owner_id)

    async def create_note(self, owner_id, text):
        return await self._call("create", owner_id, text)

    async def update_note(self, note_id, text):
        return await self._call("update", note_id, text)

    async def delete_note(self, note_id):
        return await self._call("delete", note_id)

    async def wait_pending(self, count: int):
        for _ in range(100):
            if len(self.pending) >= count:
                return
            await asyncio.sleep(0)
        raise AssertionError(f"expected {count} pending calls, got {len(self.pending)}")


@pytest.fixture
def owner():
    return "user-1"


@pytest.fixture
def sample_notes(owner):
    return [
        Note(id="1", owner_id=owner, text="A"),
        Note(id="2", owner_id=owner, text="B"),
    ]


@pytest.fixture
def store(sample_notes):
    return FakeNoteStore(sample_notes)


@pytest.fixture
def controlled_store():
    return ControlledNoteStore()


@pytest.fixture
def manager(store):
    return NoteStateManager(store, request_timeout=1.0)
