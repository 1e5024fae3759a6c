"""
Конфигурация хоста бота с автообновлением
"""
import os
import shutil
from pathlib import Path
from typing import Optional

import structlog
from dotenv import load_dotenv

# Загрузить .env файл
load_dotenv()

logger = structlog.get_logger("Config")

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE


def _env_int(key: str, default: int, minimum: int = 0) -> int:
    try:
        value = int(str(os.getenv(key, default)).strip() or default)
    except ValueError:
        value = default
    return max(minimum, value)


def _env_float(key: str, default: float, minimum: float = 0.0) -> float:
    try:
        value = float(str(os.getenv(key, default)).strip() or default)
    except ValueError:
        value = default
    return max(minimum, value)


def parse_allow_updates(raw: Optional[str]) -> Optional[bool]:
    """
    Трёхзначный флаг согласия на автообновления.
    True/False — решение сохранено; None — ещё не решено (пусто или "_").
    """
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    return None


def _default_repo_url(repo: str) -> str:
    return f"https://github.com/{repo}.git" if repo else ""


class Config:
    """Центральная конфигурация приложения"""

    # Paths
    BASE_DIR: Path = Path(__file__).parent.parent

    # Telegram
    TELEGRAM_API_ID: int = _env_int("TELEGRAM_API_ID", 0)
    TELEGRAM_API_HASH: str = os.getenv("TELEGRAM_API_HASH", "")
    TELEGRAM_SESSION_NAME: str = os.getenv("TELEGRAM_SESSION_NAME", "bothost")

    # Бот
    OWNER_USERNAME: str = os.getenv("OWNER_USERNAME", "").replace("@", "").strip()
    COMMAND_PREFIX: str = os.getenv("COMMAND_PREFIX", ".") or "."
    BOT_PUBLIC: bool = _env_bool("BOT_PUBLIC", True)

    # Автообновление
    ALLOW_UPDATES: Optional[bool] = parse_allow_updates(os.getenv("ALLOW_UPDATES"))
    UPDATE_REPO: str = os.getenv("UPDATE_REPO", "")
    UPDATE_REPO_URL: str = os.getenv("UPDATE_REPO_URL", "") or _default_repo_url(UPDATE_REPO)
    UPDATE_BRANCH: str = os.getenv("UPDATE_BRANCH", "main")
    UPDATE_CHECK_INTERVAL_SECONDS: int = _env_int("UPDATE_CHECK_INTERVAL_SECONDS", 10800, minimum=5)
    UPDATE_METADATA_TIMEOUT: float = _env_float("UPDATE_METADATA_TIMEOUT", 8.0, minimum=1.0)
    UPDATE_CLONE_TIMEOUT: float = _env_float("UPDATE_CLONE_TIMEOUT", 60.0, minimum=5.0)
    UPDATE_DELETE_MODE: bool = _env_bool("UPDATE_DELETE_MODE", False)
    UPDATE_NOTIFY_EMPTY: bool = _env_bool("UPDATE_NOTIFY_EMPTY", False)
    UPDATE_NOTIFY_CHAT: str = os.getenv("UPDATE_NOTIFY_CHAT", "").strip()
    UPDATE_GITHUB_TOKEN: Optional[str] = os.getenv("UPDATE_GITHUB_TOKEN") or None
    UPDATE_RESTART_GRACE_SECONDS: float = _env_float("UPDATE_RESTART_GRACE_SECONDS", 2.0)
    UPDATE_MARKER_FRESHNESS_SECONDS: int = _env_int("UPDATE_MARKER_FRESHNESS_SECONDS", 10, minimum=1)

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def updates_enabled(cls) -> bool:
        """Нерешённый флаг (None) трактуется как согласие, как и при первом запуске."""
        return cls.ALLOW_UPDATES is not False

    @classmethod
    def validate(cls) -> list[str]:
        """
        Проверяет настройки, без которых хост не может обслуживать сообщения.
        Настройки апдейтера проверяет build_update_monitor (ConfigError
        отключает только автообновление).
        """
        errors = []

        if not cls.TELEGRAM_API_ID:
            errors.append("TELEGRAM_API_ID не установлен")
        if not cls.TELEGRAM_API_HASH:
            errors.append("TELEGRAM_API_HASH не установлен")

        return errors

    @classmethod
    def is_valid(cls) -> bool:
        """Проверяет валидность конфигурации"""
        return len(cls.validate()) == 0

    @classmethod
    def update_setting(cls, key: str, value: str) -> bool:
        """Обновляет настройку в памяти и в .env файле"""
        try:
            key = key.upper()
            # Обновляем в текущем процессе
            if hasattr(cls, key):
                if key == "ALLOW_UPDATES":
                    cls.ALLOW_UPDATES = parse_allow_updates(value)
                elif key == "BOT_PUBLIC":
                    cls.BOT_PUBLIC = value.strip().lower() in _TRUE
                elif key == "UPDATE_CHECK_INTERVAL_SECONDS":
                    cls.UPDATE_CHECK_INTERVAL_SECONDS = max(5, int(value))
                elif key == "UPDATE_DELETE_MODE":
                    cls.UPDATE_DELETE_MODE = value.strip().lower() in _TRUE
                elif key == "COMMAND_PREFIX":
                    cls.COMMAND_PREFIX = value or "."
                elif key == "UPDATE_BRANCH":
                    cls.UPDATE_BRANCH = value

            # Обновляем .env файл для сохранения между перезапусками
            env_path = cls.BASE_DIR / ".env"
            if not env_path.exists():
                example_path = cls.BASE_DIR / ".env.example"
                if example_path.exists():
                    shutil.copy(example_path, env_path)
                else:
                    with open(env_path, "w", encoding="utf-8") as f:
                        f.write("# Generated .env\n")

            lines = env_path.read_text(encoding="utf-8").splitlines()
            found = False
            new_lines = []
            for line in lines:
                if line.strip().startswith(f"{key}="):
                    new_lines.append(f"{key}={value}")
                    found = True
                else:
                    new_lines.append(line)

            if not found:
                new_lines.append(f"{key}={value}")

            env_path.write_text("\n".join(new_lines) + "\n", encoding="utf-8")
            return True
        except (OSError, ValueError) as e:
            logger.error("config_update_failed", key=key, error=str(e))
            return False


# Синглтон для удобства
config = Config()
