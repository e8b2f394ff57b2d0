from __future__ import annotations

import logging

from telegram.ext import (
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    MessageHandler,
    filters,
)

from .config import LOG_LEVEL, TELEGRAM_BOT_TOKEN, validate_config
from . import handlers


logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, LOG_LEVEL, logging.INFO),
)
# httpx пишет каждый запрос на INFO
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def main() -> None:
    validate_config()

    if not TELEGRAM_BOT_TOKEN:
        raise RuntimeError("TELEGRAM_BOT_TOKEN is not set")

    application = ApplicationBuilder().token(TELEGRAM_BOT_TOKEN).build()

    application.add_handler(CommandHandler("start", handlers.start))
    application.add_handler(CommandHandler("help", handlers.start))
    application.add_handler(CommandHandler("notes", handlers.show_notes))
    application.add_handler(CommandHandler("refresh", handlers.refresh))
    application.add_handler(CommandHandler("new", handlers.new_note))
    application.add_handler(CommandHandler("cancel", handlers.cancel))
    application.add_handler(CommandHandler("edit", handlers.edit_note))
    application.add_handler(CommandHandler("delete", handlers.delete_note))

    # Подтверждение удаления
    application.add_handler(
        CallbackQueryHandler(handlers.on_delete_choice, pattern=r"^del")
    )

    # Текст новой заметки
    application.add_handler(
        MessageHandler(filters.TEXT & ~filters.COMMAND, handlers.handle_text)
    )

    logger.info("Starting notes bot (long polling)...")
    application.run_polling()


if __name__ == "__main__":
    main()
