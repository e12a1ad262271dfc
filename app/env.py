"""Вибір env-файлу для chart-engine.

Один перемикач профілю: `CHART_ENGINE_ENV_FILE`. Пріоритет:
1) process-ENV;
2) dispatcher-файл `.env` у корені проєкту (рядок `CHART_ENGINE_ENV_FILE=.env.local`);
3) фолбек — сам `.env`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import dotenv_values

ENV_FILE_SWITCH = "CHART_ENGINE_ENV_FILE"


@dataclass(frozen=True, slots=True)
class EnvFileSelection:
    """Вибраний env-файл і звідки взялося рішення.

    source: `process_env` | `dispatcher_env` | `fallback`.
    """

    path: Path
    source: str
    exists: bool
    ref: str | None = None


def _resolve(project_root: Path, ref: str) -> Path:
    candidate = Path(ref).expanduser()
    if not candidate.is_absolute():
        candidate = project_root / candidate
    return candidate


def _dispatcher_ref(project_root: Path) -> str | None:
    env_path = project_root / ".env"
    if not env_path.is_file():
        return None
    try:
        values = dotenv_values(env_path, encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None
    ref = (values.get(ENV_FILE_SWITCH) or "").strip()
    return ref or None


def select_env_file_with_trace(project_root: Path) -> EnvFileSelection:
    """Повертає вибраний env-файл разом із трасою рішення."""

    override = (os.getenv(ENV_FILE_SWITCH) or "").strip()
    if override:
        path = _resolve(project_root, override)
        return EnvFileSelection(path, "process_env", path.exists(), override)

    dispatched = _dispatcher_ref(project_root)
    if dispatched:
        path = _resolve(project_root, dispatched)
        return EnvFileSelection(path, "dispatcher_env", path.exists(), dispatched)

    path = project_root / ".env"
    return EnvFileSelection(path, "fallback", path.exists(), None)


def select_env_file(project_root: Path) -> Path:
    return select_env_file_with_trace(project_root).path


__all__ = ("ENV_FILE_SWITCH", "EnvFileSelection", "select_env_file", "select_env_file_with_trace")
