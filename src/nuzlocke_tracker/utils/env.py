from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional


def load_env(path: str | Path = ".env") -> Mapping[str, str]:
    """Lightweight .env loader (KEY=VALUE per line, ignores comments/blank)."""
    env_path = Path(path)
    env: dict[str, str] = {}
    if not env_path.exists():
        return env
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, val = line.split("=", 1)
        env[key.strip()] = val.strip().strip('"').strip("'")
    return env


def resolve(key: str, env: Mapping[str, str], default: Optional[str] = None) -> Optional[str]:
    """Process environment first, then the .env mapping, then the default."""
    value = os.getenv(key)
    if value:
        return value
    return env.get(key) or default
