from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Generic, TypeVar, Union


T = TypeVar("T")


@dataclass(frozen=True)
class Note:
    id: str
    owner_id: str
    text: str

    @classmethod
    def from_record(cls, record: Any) -> "Note":
        """
        Собирает заметку из записи хранилища.
        Документное хранилище отдаёт `$id` и `user_id`, REST-вариант — `id` и `owner_id`.
        """
        if not isinstance(record, dict):
            raise ValueError(f"Note record must be an object, got {type(record).__name__}")

        note_id = record.get("id") or record.get("$id")
        owner_id = record.get("owner_id") or record.get("user_id") or record.get("ownerId")
        text = record.get("text")

        if not note_id:
            raise ValueError("Note record has no id")
        if not owner_id:
            raise ValueError(f"Note record {note_id} has no owner")
        if not isinstance(text, str):
            raise ValueError(f"Note record {note_id} has no text")

        return cls(id=str(note_id), owner_id=str(owner_id), text=text)

    def with_text(self, text: str) -> "Note":
        return replace(self, text=text)


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    REMOTE = "remote"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    NO_SESSION = "no_session"

    @property
    def is_remote(self) -> bool:
        return self in (ErrorKind.REMOTE, ErrorKind.NOT_FOUND, ErrorKind.TIMEOUT)


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    ok = True


@dataclass(frozen=True)
class Failure:
    message: str
    kind: ErrorKind = ErrorKind.REMOTE

    ok = False


OperationResult = Union[Success[T], Failure]
