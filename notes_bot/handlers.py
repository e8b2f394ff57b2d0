from __future__ import annotations

import logging

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import ContextTypes

from .config import ALLOWED_USERNAMES
from .manager import NoteStateManager
from .models import Failure, Note
from .state import get_draft, get_manager

logger = logging.getLogger(__name__)

NOT_ALLOWED_TEXT = "Ты не мой создатель, я тебя не знаю и не дружу с тобой!"

HELP_TEXT = (
    "Команды:\n"
    "/notes — показать заметки\n"
    "/refresh — перечитать заметки с сервера\n"
    "/new — новая заметка (следующее сообщение станет её текстом)\n"
    "/cancel — отменить новую заметку\n"
    "/edit <id> <текст> — изменить заметку\n"
    "/delete <id> — удалить заметку"
)

CONFIRM_PREFIX = "del:"
CANCEL_DATA = "del-cancel"


def _is_authorized(update: Update) -> bool:
    user = update.effective_user
    if not user:
        return False
    if not ALLOWED_USERNAMES:
        return True
    return (user.username or "") in ALLOWED_USERNAMES


def _owner_id(update: Update) -> str:
    return str(update.effective_user.id)


def _format_error(failure: Failure) -> str:
    return f"Ошибка: {failure.message}"


def format_notes(notes: tuple[Note, ...] | list[Note]) -> str:
    if not notes:
        return "У тебя пока нет заметок."
    lines = ["Твои заметки:"]
    for i, note in enumerate(notes, start=1):
        lines.append(f"{i}. [{note.id}] {note.text}")
    return "\n".join(lines)


async def _ensure_loaded(manager: NoteStateManager, owner_id: str) -> None:
    # Первая загрузка запускается сама при создании менеджера, её достаточно дождаться
    await manager.settle()
    if not manager.synced:
        await manager.load(owner_id)


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_authorized(update):
        await update.message.reply_text(NOT_ALLOWED_TEXT)
        return

    await update.message.reply_text(
        "Привет! Я храню твои короткие заметки.\n\n" + HELP_TEXT
    )


async def show_notes(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_authorized(update):
        await update.message.reply_text(NOT_ALLOWED_TEXT)
        return

    manager = get_manager(update.effective_user.id)
    await _ensure_loaded(manager, _owner_id(update))

    state = manager.state
    text = format_notes(state.notes)
    if state.error:
        text = f"Ошибка: {state.error}\n\n{text}"
    await update.message.reply_text(text)


async def refresh(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_authorized(update):
        await update.message.reply_text(NOT_ALLOWED_TEXT)
        return

    manager = get_manager(update.effective_user.id)
    await manager.settle()
    result = await manager.load(_owner_id(update))
    if isinstance(result, Failure):
        # Старый список остаётся, показываем его вместе с ошибкой
        await update.message.reply_text(f"{_format_error(result)}\n\n{format_notes(manager.notes)}")
        return

    await update.message.reply_text(format_notes(manager.notes))


async def new_note(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_authorized(update):
        await update.message.reply_text(NOT_ALLOWED_TEXT)
        return

    draft = get_draft(update.effective_user.id)
    draft.open_()
    await update.message.reply_text("Пришли текст заметки одним сообщением. /cancel — отмена.")


async def cancel(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_authorized(update):
        await update.message.reply_text(NOT_ALLOWED_TEXT)
        return

    get_draft(update.effective_user.id).clear()
    await update.message.reply_text("Ок, отменил.")


async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_authorized(update):
        assert update.message is not None
        await update.message.reply_text(NOT_ALLOWED_TEXT)
        return

    assert update.message is not None
    user_id = update.effective_user.id
    draft = get_draft(user_id)

    if not draft.open:
        await update.message.reply_text("Чтобы создать заметку, сначала отправь /new.")
        return

    draft.text = update.message.text or ""
    manager = get_manager(user_id)
    await manager.settle()
    result = await manager.add_note(_owner_id(update), draft.text, draft=draft)

    if isinstance(result, Failure):
        await update.message.reply_text(_format_error(result))
        return
    if result.value is None:
        # Пустой текст просто игнорируем
        return

    await update.message.reply_text(f"Сохранил заметку [{result.value.id}].")


async def edit_note(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not _is_authorized(update):
        await update.message.reply_text(NOT_ALLOWED_TEXT)
        return

    args = context.args or []
    if not args:
        await update.message.reply_text("Использование: /edit <id> <текст>")
        return

    note_id = args[0]
    # context.args режет по пробелам, а переносы строк и отступы в тексте надо сохранить
    parts = (update.message.text or "").split(maxsplit=2)
    text = parts[2] if len(parts) > 2 else ""
    manager = get_manager(update.effective_user.id)
    await manager.settle()
    result = await manager.edit_note(note_id, text)

    if isinstance(result, Failure):
        await update.message.reply_text(_format_error(result))
        return

    await update.message.reply_text(f"Заметка [{note_id}] обновлена.")


async def delete_note(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Удаление только после подтверждения: спрашиваем кнопками, удаляем в on_delete_choice.
    """
    if not _is_authorized(update):
        await update.message.reply_text(NOT_ALLOWED_TEXT)
        return

    args = context.args or []
    if not args:
        await update.message.reply_text("Использование: /delete <id>")
        return

    note_id = args[0]
    keyboard = InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("Удалить", callback_data=f"{CONFIRM_PREFIX}{note_id}"),
                InlineKeyboardButton("Отмена", callback_data=CANCEL_DATA),
            ]
        ]
    )
    await update.message.reply_text(
        f"Точно удалить заметку [{note_id}]?", reply_markup=keyboard
    )


async def on_delete_choice(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    assert query is not None
    await query.answer()

    if not _is_authorized(update):
        await query.edit_message_text(NOT_ALLOWED_TEXT)
        return

    data = query.data or ""
    if not data.startswith(CONFIRM_PREFIX):
        await query.edit_message_text("Удаление отменено.")
        return

    note_id = data[len(CONFIRM_PREFIX):]
    manager = get_manager(update.effective_user.id)
    await manager.settle()
    result = await manager.delete_note(note_id)

    if isinstance(result, Failure):
        await query.edit_message_text(_format_error(result))
        return

    await query.edit_message_text(f"Заметка [{note_id}] удалена.")
