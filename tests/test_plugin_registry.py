# -*- coding: utf-8 -*-
"""Реестр плагинов: загрузка, атомарная подмена, инвалидация lib/."""

import sys

import pytest

from src.core.plugin_manager import PluginRegistry

PING = """
name = "ping"

async def execute(bot, message, args):
    return "pong"
"""

OBJECT_PLUGIN = """
class Echo:
    name = "Echo"

    def execute(self, bot, message, args):
        return " ".join(args)

plugin = Echo()
"""


@pytest.fixture
def registry(tmp_path):
    return PluginRegistry(plugins_dir=str(tmp_path / "plugins"), lib_dir=str(tmp_path / "lib"))


def test_load_all_registers_module_and_object_plugins(registry, make_tree, tmp_path):
    make_tree(tmp_path, {"plugins/ping.py": PING, "plugins/echo.py": OBJECT_PLUGIN, "plugins/_private.py": "x = 1"})

    assert registry.load_all() == 2

    assert registry.names() == ["echo", "ping"]
    assert "ECHO" in registry
    assert registry.get("echo").execute(None, None, ["a", "b"]) == "a b"
    assert registry.errors == {}


def test_broken_plugins_are_reported_and_skipped(registry, make_tree, tmp_path):
    make_tree(tmp_path, {
        "plugins/ping.py": PING,
        "plugins/syntax.py": "def broken(:\n",
        "plugins/noexec.py": "name = 'noexec'\n",
    })

    assert registry.load_all() == 1

    assert set(registry.errors) == {"syntax.py", "noexec.py"}
    assert "ping" in registry


def test_reload_swaps_table_atomically(registry, make_tree, tmp_path):
    make_tree(tmp_path, {"plugins/ping.py": PING})
    registry.load_all()
    snapshot = registry.commands
    old_generation = registry.generation

    make_tree(tmp_path, {"plugins/ping.py": PING.replace('"pong"', '"pong v2"'), "plugins/echo.py": OBJECT_PLUGIN})
    registry.reload()

    # Старый снимок не изменился: читатель посреди reload видит целый реестр
    assert list(snapshot) == ["ping"]
    assert sorted(registry.commands) == ["echo", "ping"]
    assert registry.generation > old_generation
    with pytest.raises(TypeError):
        registry.commands["x"] = object()


def test_invalidate_plugin_marks_stale_until_reload(registry, make_tree, tmp_path):
    make_tree(tmp_path, {"plugins/ping.py": PING})
    registry.load_all()

    registry.invalidate_path(tmp_path / "plugins" / "ping.py")
    assert registry.stale == {"ping.py"}

    registry.reload()
    assert registry.stale == set()


def test_lib_helper_is_reimported_after_invalidation(registry, make_tree, tmp_path, monkeypatch):
    monkeypatch.setattr(sys, "dont_write_bytecode", True)
    monkeypatch.syspath_prepend(str(tmp_path / "lib"))
    make_tree(tmp_path, {
        "lib/hotswap_helper_mod.py": "VALUE = 1\n",
        "plugins/val.py": (
            "import hotswap_helper_mod\n"
            "name = 'val'\n"
            "def execute(bot, message, args):\n"
            "    return hotswap_helper_mod.VALUE\n"
        ),
    })
    try:
        registry.load_all()
        assert registry.get("val").execute(None, None, []) == 1

        make_tree(tmp_path, {"lib/hotswap_helper_mod.py": "VALUE = 222\n"})
        registry.invalidate_path(tmp_path / "lib" / "hotswap_helper_mod.py")
        assert "hotswap_helper_mod" not in sys.modules

        registry.reload()
        assert registry.get("val").execute(None, None, []) == 222
    finally:
        sys.modules.pop("hotswap_helper_mod", None)


def test_owns_plugins_and_lib_only(registry, tmp_path):
    assert registry.owns(tmp_path / "plugins" / "ping.py")
    assert registry.owns(tmp_path / "lib" / "system_stats.py")
    assert not registry.owns(tmp_path / "src" / "main.py")
