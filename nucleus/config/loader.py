# ==============================
# Config Loader (only env reader)
# ==============================
"""
Config loader for nucleus.

Rules:
- This is the ONLY place allowed to read os.environ and .env.
- Everything else receives a validated Settings object.

Precedence:
env > .env > configs/*.yaml > defaults

Testability:
- All functions accept injected paths and env dict.
- No hardcoded absolute paths.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from pydantic import ValidationError

from nucleus.config.schema import Settings

ENV_PREFIX = "NUCLEUS__"
SECTIONS = ("app", "models", "knowledge", "chat", "policies", "logging")


# ==============================
# YAML Helpers
# ==============================


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    raw = path.read_text(encoding="utf-8").strip()
    if not raw:
        return {}
    data = yaml.safe_load(raw)
    return data if isinstance(data, dict) else {}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep-merge dictionaries: override wins.
    """
    out: Dict[str, Any] = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    # configs/<name>.yaml may either nest under its section key or be flat
    inner = data.get(name)
    if isinstance(inner, dict) and len(data) == 1:
        return inner
    return data


# ==============================
# .env Loader
# ==============================


def _read_dotenv(dotenv_path: Path) -> Dict[str, str]:
    """
    Minimal .env parser (KEY=VALUE).
    - Ignores comments and blank lines.
    - Strips surrounding quotes.
    """
    if not dotenv_path.exists():
        return {}
    envs: Dict[str, str] = {}
    for line in dotenv_path.read_text(encoding="utf-8").splitlines():
        s = line.strip()
        if not s or s.startswith("#") or "=" not in s:
            continue
        key, val = s.split("=", 1)
        key = key.strip()
        val = val.strip().strip('"').strip("'")
        if key:
            envs[key] = val
    return envs


def _coerce(v: str) -> Any:
    vs = v.strip()
    if vs.lower() in {"true", "false"}:
        return vs.lower() == "true"
    if vs.lower() in {"null", "none"}:
        return None
    if vs.isdigit() or (vs.startswith("-") and vs[1:].isdigit()):
        return int(vs)
    if "." in vs:
        try:
            return float(vs)
        except ValueError:
            pass
    if vs.startswith("[") and vs.endswith("]"):
        # comma lists: NUCLEUS__KNOWLEDGE__EXTENSIONS=[md,py]
        return [p.strip() for p in vs[1:-1].split(",") if p.strip()]
    return vs


def _apply_env_overrides(cfg: Dict[str, Any], env: Dict[str, str]) -> Dict[str, Any]:
    """
    Apply environment overrides with NUCLEUS__ style nesting.

Example:
  NUCLEUS__MODELS__CHAT_MODEL=llama3.2
  NUCLEUS__KNOWLEDGE__CHUNK_SIZE=1024
  NUCLEUS__POLICIES__GRANTED_PERMISSION=write

Rules:
- Split by '__' after prefix NUCLEUS__
- Lowercase keys for dict insertion
- Coerce booleans/ints/floats/lists when obvious
    """
    out = dict(cfg)
    for k, v in env.items():
        if not k.startswith(ENV_PREFIX):
            continue
        path = k[len(ENV_PREFIX) :].split("__")
        if not path or any(not p for p in path):
            continue
        cur: Dict[str, Any] = out
        for i, seg in enumerate(path):
            key = seg.lower()
            if i == len(path) - 1:
                cur[key] = _coerce(v)
            else:
                nxt = cur.get(key)
                if not isinstance(nxt, dict):
                    nxt = {}
                    cur[key] = nxt
                cur = nxt
    return out


# ==============================
# Public Loader API
# ==============================


def load_settings(
    *,
    repo_root: Optional[str] = None,
    configs_dir: Optional[str] = None,
    dotenv_file: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
) -> Tuple[Settings, Dict[str, Any]]:
    """
    Load and validate Settings.

Returns:
- (Settings, merged_raw_dict)

Inputs:
- repo_root: defaults to current working directory
- configs_dir: defaults to <repo_root>/configs
- dotenv_file: defaults to <repo_root>/.env
- env: injected env vars (defaults to os.environ)
    """
    env_vars = dict(env) if env is not None else dict(os.environ)

    # repo root may itself come from the environment
    root_hint = repo_root or env_vars.get(f"{ENV_PREFIX}APP__PATHS__REPO_ROOT") or os.getcwd()
    root = Path(root_hint).expanduser().resolve()
    cfg_dir = root / (configs_dir or "configs")

    merged: Dict[str, Any] = {}
    for name in SECTIONS:
        section = _section(_read_yaml(cfg_dir / f"{name}.yaml"), name)
        merged = _deep_merge(merged, {name: section})

    # .env (optional); real env wins over it
    dotenv_path = Path(dotenv_file) if dotenv_file else (root / ".env")
    effective_env = dict(env_vars)
    for k, v in _read_dotenv(dotenv_path).items():
        effective_env.setdefault(k, v)

    merged = _apply_env_overrides(merged, effective_env)

    # ensure repo_root is set deterministically (override configs)
    merged = _deep_merge(merged, {"app": {"paths": {"repo_root": str(root)}}})

    try:
        settings = Settings.model_validate(merged)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    return settings, merged
