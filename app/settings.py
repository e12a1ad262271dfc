"""Налаштування chart-engine з ENV та YAML.

Шлях: ``app/settings.py``

- `ChartEngineSettings` (pydantic-settings) читає `CHART_*` змінні з process-ENV
  та з env-файлу, вибраного `app.env.select_env_file`;
- killzone-вікна можна перевизначити YAML-файлом (`config/session_windows.yaml`),
  який валідовується моделлю `SessionWindowsCfg`.

Дефолти лежать у `config.config`; тут лише override та валідація.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.env import select_env_file
from chart_core.config import ChartEngineConfig
from config.config import (
    AUTO_SNAPSHOT_DELAY_SEC,
    CAPTURE_FLASH_SEC,
    DEFAULT_SESSION_TIMEZONE,
    FRAME_INTERVAL_SEC,
    HISTORY_DEBOUNCE_SEC,
    OFFSCREEN_PX,
    PREPEND_MARGIN_BARS,
    SESSION_WINDOWS_YAML,
    TIME_JUMP_THRESHOLD_SEC,
    VISIBILITY_THRESHOLD,
)
from core.contracts import SessionWindow

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
logger = logging.getLogger("app.settings")
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

_ENV_FILE = select_env_file(_PROJECT_ROOT)
load_dotenv(_ENV_FILE)


def _validate_timezone(value: Any) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValueError("timezone не може бути порожньою")
    try:
        ZoneInfo(text)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Невідома timezone {text!r}") from exc
    return text


class SessionWindowModel(BaseModel):
    """Одне killzone-вікно у YAML."""

    name: str
    start: int = Field(ge=0, le=23)
    end: int = Field(ge=0, le=23)
    color: str

    @field_validator("name", "color", mode="before")
    @classmethod
    def _strip_text(cls, v: Any) -> str:
        text = str(v or "").strip()
        if not text:
            raise ValueError("name/color не можуть бути порожніми")
        return text

    def to_window(self) -> SessionWindow:
        return SessionWindow(name=self.name, start=self.start, end=self.end, color=self.color)


class SessionWindowsCfg(BaseModel):
    """Вміст `session_windows.yaml`: timezone + вікна у порядку пріоритету."""

    timezone: str = DEFAULT_SESSION_TIMEZONE
    windows: list[SessionWindowModel] = Field(default_factory=list)

    @field_validator("timezone", mode="before")
    @classmethod
    def _check_timezone(cls, v: Any) -> str:
        return _validate_timezone(v)

    @model_validator(mode="after")
    def _ensure_unique_names(self) -> SessionWindowsCfg:
        seen: set[str] = set()
        for window in self.windows:
            if window.name in seen:
                raise ValueError(f"Дублікат вікна сесії: {window.name}")
            seen.add(window.name)
        return self

    def to_windows(self) -> tuple[SessionWindow, ...]:
        return tuple(w.to_window() for w in self.windows)


def load_session_windows(path: str | Path | None = None) -> SessionWindowsCfg:
    """Читає і валідує YAML з вікнами сесій.

    Відсутній файл → дефолтні вікна з `config.config`.
    """

    yaml_path = Path(path) if path is not None else SESSION_WINDOWS_YAML
    if not yaml_path.exists():
        logger.info("[Settings] %s не знайдено — дефолтні killzone-вікна", yaml_path)
        from chart_core.config import default_session_windows

        return SessionWindowsCfg(
            windows=[
                SessionWindowModel(name=w.name, start=w.start, end=w.end, color=w.color)
                for w in default_session_windows()
            ]
        )
    with yaml_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{yaml_path}: очікується YAML-мапа")
    return SessionWindowsCfg(**raw)


class ChartEngineSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CHART_",
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    time_jump_threshold_sec: int = TIME_JUMP_THRESHOLD_SEC
    prepend_margin_bars: int = PREPEND_MARGIN_BARS
    history_debounce_sec: float = HISTORY_DEBOUNCE_SEC
    capture_flash_sec: float = CAPTURE_FLASH_SEC
    auto_snapshot_delay_sec: float = AUTO_SNAPSHOT_DELAY_SEC
    frame_interval_sec: float = FRAME_INTERVAL_SEC
    offscreen_px: int = OFFSCREEN_PX
    visibility_threshold: float = VISIBILITY_THRESHOLD
    # None → timezone з YAML (або дефолт), інакше явний override
    session_timezone: str | None = None
    session_windows_file: Path = SESSION_WINDOWS_YAML
    log_level: str = "INFO"

    @field_validator(
        "time_jump_threshold_sec",
        "prepend_margin_bars",
        "frame_interval_sec",
        "offscreen_px",
    )
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("значення має бути додатним")
        return v

    @field_validator(
        "history_debounce_sec", "capture_flash_sec", "auto_snapshot_delay_sec"
    )
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("затримка не може бути від'ємною")
        return v

    @field_validator("visibility_threshold")
    @classmethod
    def _ratio(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("visibility_threshold має бути у [0, 1]")
        return v

    @field_validator("session_timezone", mode="before")
    @classmethod
    def _check_timezone(cls, v: Any) -> str | None:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return _validate_timezone(v)

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, v: Any) -> str:
        text = str(v or "INFO").strip().upper()
        if text not in logging.getLevelNamesMapping():
            raise ValueError(f"Невідомий рівень логування {text!r}")
        return text

    def to_engine_config(self) -> ChartEngineConfig:
        sessions = load_session_windows(self.session_windows_file)
        return ChartEngineConfig(
            time_jump_threshold_sec=self.time_jump_threshold_sec,
            prepend_margin_bars=self.prepend_margin_bars,
            history_debounce_sec=self.history_debounce_sec,
            capture_flash_sec=self.capture_flash_sec,
            auto_snapshot_delay_sec=self.auto_snapshot_delay_sec,
            frame_interval_sec=self.frame_interval_sec,
            offscreen_px=self.offscreen_px,
            visibility_threshold=self.visibility_threshold,
            session_timezone=self.session_timezone or sessions.timezone,
            session_windows=sessions.to_windows(),
        )


__all__ = (
    "ChartEngineSettings",
    "SessionWindowModel",
    "SessionWindowsCfg",
    "load_session_windows",
)
