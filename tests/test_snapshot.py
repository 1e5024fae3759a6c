# -*- coding: utf-8 -*-
"""Снапшот ветки: команда git, ошибки, таймаут и уборка скретча."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.core.exceptions import SnapshotFetchError
from src.updater.snapshot import SNAPSHOT_PREFIX, SnapshotFetcher


def _fake_git(returncode=0, stderr=b"", create=True, hang=False):
    """create_subprocess_exec, который "клонирует", создавая целевую директорию."""

    async def factory(*cmd, **kwargs):
        target = Path(cmd[-1])
        proc = MagicMock()
        proc.returncode = returncode

        async def communicate():
            if hang:
                await asyncio.sleep(10)
            if create:
                target.mkdir(parents=True)
                (target / "README.md").write_text("remote", encoding="utf-8")
            return b"", stderr

        proc.communicate = communicate
        proc.wait = AsyncMock(return_value=returncode)
        factory.proc = proc
        factory.cmd = cmd
        factory.env = kwargs.get("env")
        return proc

    return factory


def _snapshots(root: Path):
    return [p for p in root.iterdir() if p.name.startswith(SNAPSHOT_PREFIX)]


@pytest.mark.asyncio
async def test_fetch_runs_shallow_single_branch_clone(tmp_path):
    fetcher = SnapshotFetcher("https://github.com/owner/bot.git", "dev", tmp_path)
    fake = _fake_git()

    with patch("src.updater.snapshot.asyncio.create_subprocess_exec", side_effect=fake):
        path = await fetcher.fetch_snapshot()

    assert path.parent == tmp_path.resolve()
    assert path.name.startswith(SNAPSHOT_PREFIX)
    assert (path / "README.md").exists()
    assert list(fake.cmd[:7]) == ["git", "clone", "--depth", "1", "--single-branch", "--branch", "dev"]
    assert fake.cmd[7] == "https://github.com/owner/bot.git"
    assert fake.env["GIT_TERMINAL_PROMPT"] == "0"


@pytest.mark.asyncio
async def test_nonzero_exit_raises_and_cleans_up(tmp_path):
    fetcher = SnapshotFetcher("https://example.invalid/bot.git", "main", tmp_path)
    fake = _fake_git(returncode=128, stderr=b"fatal: repository not found")

    with patch("src.updater.snapshot.asyncio.create_subprocess_exec", side_effect=fake):
        with pytest.raises(SnapshotFetchError) as exc_info:
            await fetcher.fetch_snapshot()

    assert "repository not found" in str(exc_info.value)
    assert exc_info.value.retryable is True
    assert _snapshots(tmp_path) == []


@pytest.mark.asyncio
async def test_timeout_kills_git_and_raises(tmp_path):
    fetcher = SnapshotFetcher("https://example.invalid/bot.git", "main", tmp_path, timeout=0.05)
    fake = _fake_git(hang=True)

    with patch("src.updater.snapshot.asyncio.create_subprocess_exec", side_effect=fake):
        with pytest.raises(SnapshotFetchError):
            await fetcher.fetch_snapshot()

    fake.proc.kill.assert_called_once()
    assert _snapshots(tmp_path) == []


@pytest.mark.asyncio
async def test_missing_git_binary_raises(tmp_path):
    fetcher = SnapshotFetcher("https://example.invalid/bot.git", "main", tmp_path)

    with patch(
        "src.updater.snapshot.asyncio.create_subprocess_exec",
        side_effect=FileNotFoundError("git"),
    ):
        with pytest.raises(SnapshotFetchError):
            await fetcher.fetch_snapshot()


@pytest.mark.asyncio
async def test_snapshot_context_removes_dir_even_on_error(tmp_path):
    fetcher = SnapshotFetcher("https://github.com/owner/bot.git", "main", tmp_path)

    with patch("src.updater.snapshot.asyncio.create_subprocess_exec", side_effect=_fake_git()):
        with pytest.raises(RuntimeError):
            async with fetcher.snapshot() as path:
                assert path.exists()
                raise RuntimeError("boom")

    assert _snapshots(tmp_path) == []


def test_cleanup_stale_removes_only_prefixed_dirs(tmp_path):
    (tmp_path / f"{SNAPSHOT_PREFIX}1" / "src").mkdir(parents=True)
    (tmp_path / f"{SNAPSHOT_PREFIX}2").mkdir()
    (tmp_path / "plugins").mkdir()

    fetcher = SnapshotFetcher("url", "main", tmp_path)

    assert fetcher.cleanup_stale() == 2
    assert [p.name for p in tmp_path.iterdir()] == ["plugins"]


def test_remove_snapshot_refuses_foreign_paths(tmp_path):
    victim = tmp_path / "src"
    victim.mkdir()
    fetcher = SnapshotFetcher("url", "main", tmp_path)

    fetcher.remove_snapshot(victim)

    assert victim.exists()
