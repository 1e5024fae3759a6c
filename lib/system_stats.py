# -*- coding: utf-8 -*-
"""
Общие помощники для плагинов: аптайм процесса и сведения о платформе.
Лежат в lib/, поэтому обновление этого файла перезагружает плагины без рестарта.
Модуль не хранит состояния: время старта берётся у ОС через psutil и
переживает перезагрузку помощника.
"""

import os
import platform
import time

import psutil


def format_duration(seconds: float) -> str:
    seconds = int(max(0, seconds))
    days, rest = divmod(seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)
    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    return f"{minutes}m {secs}s"


def process_started_at() -> float:
    """Unix-время старта текущего процесса."""
    return psutil.Process(os.getpid()).create_time()


def process_uptime() -> str:
    return format_duration(time.time() - process_started_at())


def platform_summary() -> str:
    mem = psutil.virtual_memory()
    return (
        f"{platform.system()} {platform.release()} · Python {platform.python_version()}"
        f" · pid {os.getpid()} · RAM {mem.percent}%"
    )
