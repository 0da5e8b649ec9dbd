"""Configuration loader for inkpress.toml."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

CONFIG_FILENAME = "inkpress.toml"
MATH_ENGINES = ("none", "katex", "mathjax")


class ConfigError(ValueError):
    """Raised when a config file exists but cannot be used."""


@dataclass
class SceneConfig:
    """Diagram rendering options."""
    padding: float = 24.0
    background: bool = True
    fetch_timeout: float = 10.0


@dataclass
class PageConfig:
    """HTML page options."""
    title: str | None = None
    dark_mode: bool = False
    math_engine: str = "none"
    toc_max_level: int = 3


@dataclass
class RenderConfig:
    """Complete inkpress configuration."""
    page: PageConfig = field(default_factory=PageConfig)
    scene: SceneConfig = field(default_factory=SceneConfig)
    source: Path | None = None


def load_config(config_path: Path | None = None) -> RenderConfig:
    """
    Load configuration from inkpress.toml.

    Search order:
    1. config_path (if provided; must exist)
    2. cwd/inkpress.toml

    Missing files yield the defaults.
    """
    if config_path is not None and not config_path.exists():
        raise ConfigError(f"config file not found: {config_path}")

    search_paths = [config_path] if config_path else []
    search_paths.append(Path.cwd() / CONFIG_FILENAME)

    for path in search_paths:
        if path.exists():
            try:
                with open(path, "rb") as f:
                    data = tomllib.load(f)
            except tomllib.TOMLDecodeError as exc:
                raise ConfigError(f"invalid config {path}: {exc}") from exc
            log.debug("loaded config from %s", path)
            config = config_from_dict(data)
            config.source = path
            return config

    return RenderConfig()


def config_from_dict(data: dict[str, Any]) -> RenderConfig:
    page_data = data.get("page", {})
    scene_data = data.get("scene", {})
    if not isinstance(page_data, dict) or not isinstance(scene_data, dict):
        raise ConfigError("[page] and [scene] must be tables")

    math_engine = str(page_data.get("math_engine", "none")).lower()
    if math_engine not in MATH_ENGINES:
        raise ConfigError(f"unknown math_engine {math_engine!r} (expected one of {', '.join(MATH_ENGINES)})")

    try:
        page = PageConfig(
            title=page_data.get("title"),
            dark_mode=bool(page_data.get("dark_mode", False)),
            math_engine=math_engine,
            toc_max_level=max(1, min(6, int(page_data.get("toc_max_level", 3)))),
        )
        scene = SceneConfig(
            padding=float(scene_data.get("padding", 24.0)),
            background=bool(scene_data.get("background", True)),
            fetch_timeout=float(scene_data.get("fetch_timeout", 10.0)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid config value: {exc}") from exc

    return RenderConfig(page=page, scene=scene)
