"""Тести прозорого вибору env-файлу.

Вимога:
- Має бути один перемикач профілю: `CHART_ENGINE_ENV_FILE`.
- Джерела (за пріоритетом):
  1) process-ENV
  2) dispatcher `.env`
  3) сам `.env`
"""

from __future__ import annotations

from pathlib import Path

from app.env import ENV_FILE_SWITCH, select_env_file, select_env_file_with_trace


def test_select_env_file_prefers_process_env_over_dispatcher(
    monkeypatch, tmp_path: Path
) -> None:
    project_root = tmp_path

    (project_root / ".env").write_text(f"{ENV_FILE_SWITCH}=.env.local\n", encoding="utf-8")
    (project_root / ".env.local").write_text("CHART_OFFSCREEN_PX=10\n", encoding="utf-8")

    monkeypatch.setenv(ENV_FILE_SWITCH, ".env.prod")
    selection = select_env_file_with_trace(project_root)

    assert selection.path == project_root / ".env.prod"
    assert selection.source == "process_env"
    assert selection.exists is False


def test_select_env_file_uses_dispatcher_env_when_process_env_missing(
    monkeypatch, tmp_path: Path
) -> None:
    project_root = tmp_path

    (project_root / ".env").write_text(f"{ENV_FILE_SWITCH}=.env.local\n", encoding="utf-8")
    (project_root / ".env.local").write_text("CHART_OFFSCREEN_PX=10\n", encoding="utf-8")

    monkeypatch.delenv(ENV_FILE_SWITCH, raising=False)
    selection = select_env_file_with_trace(project_root)

    assert selection.path == project_root / ".env.local"
    assert selection.source == "dispatcher_env"
    assert selection.exists is True
    assert selection.ref == ".env.local"


def test_select_env_file_falls_back_to_dotenv(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.delenv(ENV_FILE_SWITCH, raising=False)

    assert select_env_file(tmp_path) == tmp_path / ".env"
    assert select_env_file_with_trace(tmp_path).source == "fallback"


def test_absolute_override_is_kept_as_is(monkeypatch, tmp_path: Path) -> None:
    target = tmp_path / "profiles" / ".env.ci"
    monkeypatch.setenv(ENV_FILE_SWITCH, str(target))

    assert select_env_file(tmp_path / "elsewhere") == target
