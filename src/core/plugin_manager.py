# -*- coding: utf-8 -*-
"""
Plugin Registry.
Динамическая загрузка командных плагинов из папки plugins/.

Контракт плагина: модуль экспортирует `name: str` и вызываемый
`execute(bot, message, args)` — на уровне модуля или в объекте `plugin`.

Перезагрузка — не правка кэша импорта, а пересборка реестра: каждый файл
заново исполняется под уникальным именем модуля, новая таблица команд
подменяет старую одним присваиванием. Читатели видят либо полностью
старый, либо полностью новый реестр.
"""

import importlib.util
import itertools
import os
import sys
from pathlib import Path
from types import MappingProxyType, ModuleType
from typing import Any, Mapping, Optional

import structlog

from src.core.exceptions import PluginLoadError

logger = structlog.get_logger("PluginRegistry")

_generation = itertools.count(1)


class PluginRegistry:
    def __init__(self, plugins_dir: str = "plugins", lib_dir: Optional[str] = "lib"):
        self.plugins_dir = Path(plugins_dir).resolve()
        self.lib_dir = Path(lib_dir).resolve() if lib_dir else None
        self._commands: Mapping[str, Any] = MappingProxyType({})
        self.errors: dict[str, str] = {}
        self.stale: set[str] = set()
        self.generation = 0
        os.makedirs(self.plugins_dir, exist_ok=True)

    # --- чтение (без блокировок: одна ссылка на неизменяемый снимок) ---

    @property
    def commands(self) -> Mapping[str, Any]:
        return self._commands

    def get(self, name: str) -> Optional[Any]:
        return self._commands.get(name.lower())

    def names(self) -> list[str]:
        return sorted(self._commands)

    def __len__(self) -> int:
        return len(self._commands)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._commands

    # --- загрузка ---

    def plugin_files(self) -> list[Path]:
        if not self.plugins_dir.is_dir():
            return []
        return sorted(
            p for p in self.plugins_dir.iterdir()
            if p.is_file() and p.suffix == ".py" and not p.name.startswith("_")
        )

    def _load_module(self, path: Path, generation: int) -> ModuleType:
        module_name = f"_bot_plugin_{path.stem}_{generation}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise PluginLoadError("не удалось создать spec", plugin_file=path.name)
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            raise PluginLoadError(f"{type(e).__name__}: {e}", plugin_file=path.name) from e
        return module

    @staticmethod
    def _extract(module: ModuleType, path: Path) -> Any:
        candidate = getattr(module, "plugin", module)
        name = getattr(candidate, "name", None)
        execute = getattr(candidate, "execute", None)
        if not isinstance(name, str) or not name.strip() or not callable(execute):
            raise PluginLoadError("плагин должен экспортировать name и execute", plugin_file=path.name)
        return candidate

    def load_all(self) -> int:
        """Читает все плагины с диска и атомарно подменяет таблицу команд."""
        generation = next(_generation)
        fresh: dict[str, Any] = {}
        errors: dict[str, str] = {}

        for path in self.plugin_files():
            try:
                plugin = self._extract(self._load_module(path, generation), path)
            except PluginLoadError as e:
                errors[path.name] = str(e)
                logger.error("❌ plugin_load_failed", file=path.name, error=str(e))
                continue
            key = plugin.name.strip().lower()
            if key in fresh:
                logger.warning("plugin_name_conflict", name=key, file=path.name)
            fresh[key] = plugin

        self._commands = MappingProxyType(fresh)
        self.errors = errors
        self.stale.clear()
        self.generation = generation
        logger.info("🧩 plugins_loaded", count=len(fresh), failed=len(errors), generation=generation)
        return len(fresh)

    def reload(self) -> int:
        return self.load_all()

    # --- инвалидация после записи файлов апдейтером ---

    def _is_under(self, path: Path, directory: Optional[Path]) -> bool:
        if directory is None:
            return False
        return directory == path or directory in path.parents

    def invalidate_path(self, path: os.PathLike) -> None:
        """
        Помечает изменённый файл. Плагины перечитываются при reload();
        вспомогательные модули из lib/ выбрасываются из sys.modules, чтобы
        следующий импорт из плагина прочитал их заново.
        """
        target = Path(path).resolve()
        if self._is_under(target, self.plugins_dir):
            self.stale.add(target.name)
            return
        if self._is_under(target, self.lib_dir):
            for mod_name, module in list(sys.modules.items()):
                mod_file = getattr(module, "__file__", None)
                if mod_file and Path(mod_file).resolve() == target:
                    sys.modules.pop(mod_name, None)
                    logger.debug("helper_module_evicted", module=mod_name)
            self.stale.add(target.name)

    def owns(self, path: os.PathLike) -> bool:
        """Файл относится к плагинам или их библиотеке (горячая перезагрузка)."""
        target = Path(path).resolve()
        return self._is_under(target, self.plugins_dir) or self._is_under(target, self.lib_dir)
