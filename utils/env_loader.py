import os
from pathlib import Path
from typing import Dict


def load_environments(env_path: str = ".env") -> Dict[str, str]:
    """Load KEY=VALUE pairs from a .env file without overriding the process environment."""
    env_file = Path(env_path)
    if not env_file.exists():
        return {}

    loaded: Dict[str, str] = {}
    for raw_line in env_file.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip("'").strip('"')
        if key and key not in os.environ:
            os.environ[key] = value
            loaded[key] = value
    return loaded
