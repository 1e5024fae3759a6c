# -*- coding: utf-8 -*-
"""Правила путей: wildcard → regex, иначе подстрока; basename и полный путь."""

from src.updater.rules import PathRule, PathRules, to_posix


def test_wildcard_rule_anchored_at_end():
    rules = PathRules.from_patterns(["*.pyc"])
    assert rules.matches("src/core/module.pyc")
    assert not rules.matches("src/core/module.pyc.bak")
    # Точка экранирована: "xpyc" не совпадает с "*.pyc"
    assert not rules.matches("src/xpyc")


def test_literal_rule_matches_substring():
    rules = PathRules.from_patterns(["__pycache__"])
    assert rules.matches("src/__pycache__", is_dir=True)
    assert rules.matches("src/__pycache__/main.cpython-311.pyc")
    assert not rules.matches("src/main.py")


def test_directory_rule_needs_trailing_slash_candidate():
    rules = PathRules.from_patterns(["logs/"])
    assert rules.matches("logs", is_dir=True)
    assert rules.matches("logs/bot.log")
    # Файл с тем же именем без слэша не считается директорией
    assert not rules.matches("logs", is_dir=False)


def test_rule_checks_basename_and_relative_path():
    rules = PathRules.from_patterns(["src/core/"])
    assert rules.matches("src/core/config_manager.py")
    assert not rules.matches("src/handlers/updates.py")

    by_name = PathRules.from_patterns(["version.local"])
    assert by_name.matches("nested/dir/version.local")


def test_empty_patterns_are_skipped():
    rules = PathRules.from_patterns(["", "   ", "*.log"])
    assert len(rules) == 1
    assert rules.patterns == ["*.log"]
    assert not PathRules()
    assert not PathRules().matches("anything.py")


def test_parse_strips_whitespace():
    rule = PathRule.parse("  *.session  ")
    assert rule.pattern == "*.session"
    assert rule.test("bothost.session")


def test_to_posix_normalizes_separators():
    assert to_posix("./src\\core\\x.py") == "src/core/x.py"
    assert to_posix("plugins/") == "plugins"
    assert to_posix("") == ""
