from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from .config import NOTES_API_BASE_URL, NOTES_API_KEY, NOTES_REQUEST_TIMEOUT
from .models import ErrorKind, Failure, Note, OperationResult, Success

logger = logging.getLogger(__name__)


class NoteStore(Protocol):
    async def list_notes(self, owner_id: str) -> OperationResult[list[Note]]: ...

    async def create_note(self, owner_id: str, text: str) -> OperationResult[Note]: ...

    async def update_note(self, note_id: str, text: str) -> OperationResult[Note]: ...

    async def delete_note(self, note_id: str) -> OperationResult[None]: ...


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for key in ("message", "error", "detail"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return f"HTTP {resp.status_code}"


class NoteStoreClient:
    """
    Клиент удалённого хранилища заметок.
    Любая ошибка транспорта или сервера возвращается как Failure, исключения наружу не летят.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key or NOTES_API_KEY
        self.base_url = (base_url or NOTES_API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else NOTES_REQUEST_TIMEOUT
        self._client = client

        if not self.api_key:
            raise RuntimeError("NOTES_API_KEY is not set")

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self.base_url}{path}"
        if self._client is not None:
            resp = await self._client.request(method, url, headers=self._headers, **kwargs)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.request(method, url, headers=self._headers, **kwargs)
        resp.raise_for_status()
        return resp

    async def _call(self, op: str, method: str, path: str, **kwargs: Any) -> httpx.Response | Failure:
        try:
            return await self._request(method, path, **kwargs)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            message = _error_message(e.response)
            logger.warning(f"{op}: store answered {status}: {message}")
            kind = ErrorKind.NOT_FOUND if status == 404 else ErrorKind.REMOTE
            return Failure(message, kind)
        except httpx.TimeoutException:
            logger.warning(f"{op}: store request timed out")
            return Failure("Note store did not respond in time", ErrorKind.TIMEOUT)
        except httpx.HTTPError as e:
            logger.warning(f"{op}: store request failed: {e}")
            return Failure(str(e) or type(e).__name__, ErrorKind.REMOTE)

    @staticmethod
    def _parse_note(op: str, resp: httpx.Response) -> OperationResult[Note]:
        try:
            return Success(Note.from_record(resp.json()))
        except ValueError as e:
            logger.warning(f"{op}: malformed note record: {e}")
            return Failure(f"Malformed response from note store: {e}")

    async def list_notes(self, owner_id: str) -> OperationResult[list[Note]]:
        resp = await self._call("list", "GET", "/notes", params={"owner_id": owner_id})
        if isinstance(resp, Failure):
            return resp

        try:
            data = resp.json()
            records = data.get("notes", data.get("documents")) if isinstance(data, dict) else data
            if not isinstance(records, list):
                raise ValueError("expected a list of notes")
            notes = [Note.from_record(r) for r in records]
        except ValueError as e:
            logger.warning(f"list: malformed response: {e}")
            return Failure(f"Malformed response from note store: {e}")

        return Success(notes)

    async def create_note(self, owner_id: str, text: str) -> OperationResult[Note]:
        payload = {
            "owner_id": owner_id,
            "text": text,
        }
        resp = await self._call("create", "POST", "/notes", json=payload)
        if isinstance(resp, Failure):
            return resp
        return self._parse_note("create", resp)

    async def update_note(self, note_id: str, text: str) -> OperationResult[Note]:
        payload = {
            "text": text,
        }
        resp = await self._call("update", "PATCH", f"/notes/{note_id}", json=payload)
        if isinstance(resp, Failure):
            return resp
        return self._parse_note("update", resp)

    async def delete_note(self, note_id: str) -> OperationResult[None]:
        resp = await self._call("delete", "DELETE", f"/notes/{note_id}")
        if isinstance(resp, Failure):
            return resp
        return Success(None)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
