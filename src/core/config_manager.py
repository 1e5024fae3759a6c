# -*- coding: utf-8 -*-
"""
Config Manager хоста бота.
YAML-конфиг с правилами апдейтера (ignore/protected/core) и путями плагинов.
Перечитывается без перезапуска (reload), редактируется вручную оператором.
"""

import copy
import os
import yaml
import structlog

logger = structlog.get_logger("ConfigManager")

# Путь к конфигу
CONFIG_PATH = "config.yaml"

# Дефолтные значения
DEFAULTS = {
    "updater": {
        # Никогда не хешируются, не сравниваются и не перезаписываются
        "ignore_patterns": [
            ".git/",
            "__pycache__",
            "*.pyc",
            ".venv/",
            "venv/",
            "node_modules/",
            ".env",
            "*.log",
            "logs/",
            "*.session",
            "*.session-journal",
            "session/",
            "temp/",
            "tmp/",
            ".update_snapshot_",
            ".update_pending.json",
            ".pytest_cache/",
        ],
        # Локальные настройки/данные пользователя: не трогаем, даже если пришли из репозитория
        "protected_patterns": [
            "config.yaml",
            ".env",
            "data/",
            "version.local",
        ],
        # Изменение любого из этих путей требует полного перезапуска
        "core_patterns": [
            "src/updater/",
            "src/main.py",
            "src/config.py",
            "src/core/",
            "src/handlers/",
            "pyproject.toml",
            "requirements*.txt",
            "*.lock",
        ],
    },
    "plugins": {
        "dir": "plugins",
        "lib_dir": "lib",
    },
}


class ConfigManager:
    """
    Менеджер конфигурации с горячей перезагрузкой.

    Использование:
        cfg = ConfigManager()
        patterns = cfg.get("updater.ignore_patterns")
        cfg.set("plugins.dir", "plugins")              # → сохраняет в YAML
    """

    def __init__(self, path: str = CONFIG_PATH):
        self.path = path
        self.data = {}
        self._load()

    def _load(self):
        """Загрузка конфига из файла или создание нового."""
        if os.path.exists(self.path):
            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    self.data = yaml.safe_load(f) or {}
                logger.info("✅ Config loaded", path=self.path)
            except (OSError, yaml.YAMLError) as e:
                logger.error("❌ Failed to load config", path=self.path, error=str(e))
                self.data = {}
        else:
            self.data = copy.deepcopy(DEFAULTS)
            self._save()
            logger.info("📝 Default config created", path=self.path)

    def _save(self):
        """Сохранение текущего конфига в файл."""
        try:
            with open(self.path, 'w', encoding='utf-8') as f:
                yaml.dump(self.data, f, default_flow_style=False, allow_unicode=True)
        except OSError as e:
            logger.error("❌ Failed to save config", path=self.path, error=str(e))

    def get(self, key: str, default=None):
        """
        Получить значение по dot-нотации.
        Пример: cfg.get("plugins.dir") → "plugins"
        """
        keys = key.split(".")
        value = self.data
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
            if value is None:
                # Попробуем вернуть из дефолтов
                def_value = DEFAULTS
                for dk in keys:
                    if isinstance(def_value, dict):
                        def_value = def_value.get(dk)
                    else:
                        return default
                return copy.deepcopy(def_value) if def_value is not None else default
        return value

    def get_list(self, key: str) -> list[str]:
        """Список строк (паттерны правил); одиночная строка превращается в список."""
        value = self.get(key, [])
        if isinstance(value, str):
            return [value]
        if not isinstance(value, (list, tuple)):
            return []
        return [str(item) for item in value if str(item).strip()]

    def set(self, key: str, value) -> bool:
        """
        Установить значение по dot-нотации и сохранить.
        """
        keys = key.split(".")
        d = self.data
        for k in keys[:-1]:
            if k not in d or not isinstance(d[k], dict):
                d[k] = {}
            d = d[k]

        d[keys[-1]] = value
        self._save()
        logger.info("🔄 Config updated", key=key, value=value)
        return True

    def reload(self):
        """Перечитать конфиг с диска."""
        self._load()

    def get_all(self) -> dict:
        """Возвращает всё загруженное конфигурационное дерево (copy)."""
        return copy.deepcopy(self.data)
