import os

from dotenv import load_dotenv


load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from None


def _env_list(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [p.strip().lstrip("@") for p in raw.split(",") if p.strip()]


TELEGRAM_BOT_TOKEN: str | None = os.getenv("TELEGRAM_BOT_TOKEN")

NOTES_API_KEY: str | None = os.getenv("NOTES_API_KEY")
NOTES_API_BASE_URL: str = os.getenv("NOTES_API_BASE_URL", "http://localhost:8000/v1")
NOTES_REQUEST_TIMEOUT: float = _env_float("NOTES_REQUEST_TIMEOUT", 15.0)

# Сохранять черновик, если создать заметку не удалось
KEEP_DRAFT_ON_FAILURE: bool = _env_bool("KEEP_DRAFT_ON_FAILURE", False)

# Пустой список — пускаем всех
ALLOWED_USERNAMES: list[str] = _env_list("ALLOWED_USERNAMES")

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


def validate_config() -> None:
    missing: list[str] = []
    if not TELEGRAM_BOT_TOKEN:
        missing.append("TELEGRAM_BOT_TOKEN")
    if not NOTES_API_KEY:
        missing.append("NOTES_API_KEY")

    if missing:
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}"
        )
