# src/bitemit/wire_config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import find_dotenv, load_dotenv

from bitemit.core.emitter import BitFieldEmitter
from bitemit.core.log import env_flag


@dataclass
class EmitterSettings:
    max_bits: int = 32
    metrics: bool = True
    log_level: str = "INFO"
    log_json: bool = False


def _env_int(var: str, default: int) -> int:
    raw = os.getenv(var)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw, 0)
    except ValueError:
        raise ValueError(f"{var} must be an integer, got {raw!r}") from None


def load_settings() -> EmitterSettings:
    """Settings from the environment; a .env in the working dir is read first."""
    load_dotenv(find_dotenv(usecwd=True))
    return EmitterSettings(
        max_bits=_env_int("BITEMIT_MAX_BITS", 32),
        metrics=env_flag("BITEMIT_METRICS", True),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=env_flag("LOG_JSON", False),
    )


def build_emitter(name: str, cfg: Optional[Dict[str, Any]] = None,
                  settings: Optional[EmitterSettings] = None) -> BitFieldEmitter:
    settings = settings or load_settings()
    cfg = cfg or {}
    return BitFieldEmitter(
        cfg.get("max_bits", settings.max_bits),
        name=cfg.get("name", f"bitemit.{name}"),
        metrics=bool(cfg.get("metrics", settings.metrics)),
    )


def build_from_yaml(yaml_path: str) -> Dict[str, BitFieldEmitter]:
    """
    Read a YAML file like

        emitters:
          input:  {max_bits: 8}
          net:    {max_bits: 64, metrics: false}

    and build one emitter per entry. Missing fields come from load_settings().
    """
    data = yaml.safe_load(Path(yaml_path).read_text(encoding="utf-8")) or {}
    entries = data.get("emitters") or {}
    if not isinstance(entries, dict):
        raise ValueError(f"{yaml_path}: 'emitters' must be a mapping")

    settings = load_settings()
    return {name: build_emitter(name, cfg, settings) for name, cfg in entries.items()}
