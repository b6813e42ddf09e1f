from pydantic_settings import BaseSettings
import logging
import json
import os
import shutil
import tempfile


class Settings(BaseSettings):
    db_dsn: str = os.getenv("DB_DSN", "sqlite:///./data/animalitos.db")
    recent_window: int = int(os.getenv("RECENT_WINDOW", 100))
    accuracy_window: int = int(os.getenv("ACCURACY_WINDOW", 10))
    results_url: str = os.getenv("RESULTS_URL", "https://juegoactivo.com/resultados/animalitos")
    request_timeout: float = float(os.getenv("REQUEST_TIMEOUT", 10))
    refresh_seconds: float = float(os.getenv("REFRESH_SECONDS", 2))
    health_check_seconds: float = float(os.getenv("HEALTH_CHECK_SECONDS", 600))
    stale_after_seconds: float = float(os.getenv("STALE_AFTER_SECONDS", 900))
    site_timezone: str = os.getenv("SITE_TIMEZONE", "America/Caracas")
    api_key: str | None = os.getenv("API_KEY")
    telegram_bot_token: str | None = os.getenv("TELEGRAM_BOT_TOKEN")
    telegram_chat_ids: str = os.getenv("TELEGRAM_CHAT_IDS", "")
    users_file: str = os.getenv("USERS_FILE", "./data/registered_users.json")
    accuracy_threshold: float = float(os.getenv("ACCURACY_THRESHOLD", 50.0))
    notification_cooldown: float = float(os.getenv("NOTIFICATION_COOLDOWN", 30))
    welcome_cooldown: float = float(os.getenv("WELCOME_COOLDOWN", 60))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    def seed_chat_ids(self) -> list[str]:
        return [c.strip() for c in self.telegram_chat_ids.split(",") if c.strip()]

settings = Settings()


def setup_logging(name: str, level: int | str | None = None) -> logging.Logger:
    """
    Return a logger with the project's standard stream format.

    Handlers are attached once per logger name, so calling this at import
    time from every module is safe.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(level or settings.log_level)

    return logger


def atomic_json_write(filepath: str, data, indent: int = 2) -> bool:
    """Write JSON through a temp file + rename so readers never see half a file."""
    logger = setup_logging('animalitos.config')
    tmp_path = None

    try:
        dir_name = os.path.dirname(filepath) or '.'
        os.makedirs(dir_name, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode='w', encoding='utf-8', suffix='.json', dir=dir_name, delete=False
        ) as tmp_file:
            json.dump(data, tmp_file, indent=indent, ensure_ascii=False)
            tmp_path = tmp_file.name
        shutil.move(tmp_path, filepath)
        return True
    except OSError as e:
        logger.error(f"Atomic write of {filepath} failed: {e}")
        if tmp_path and os.path.exists(tmp_path):
            os.remove(tmp_path)
        return False


def safe_json_read(filepath: str, default=None):
    if default is None:
        default = {}
    if not os.path.exists(filepath):
        return default
    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        setup_logging('animalitos.config').warning(f"Could not read {filepath}: {e}. Using default.")
        return default
