# config.py
# Settings from the environment, and logging setup

import logging
import os
from dataclasses import dataclass
from pathlib import Path


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3001
DEFAULT_PATTERN = "*.json"


@dataclass
class Settings:
    root: Path
    presets_path: Path
    pattern: str = DEFAULT_PATTERN
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ=None):
        env = os.environ if environ is None else environ
        root = Path(env.get("JSONTREE_ROOT") or os.getcwd()).resolve()
        presets = env.get("JSONTREE_PRESETS")
        port = env.get("JSONTREE_PORT") or str(DEFAULT_PORT)
        try:
            port = int(port)
        except ValueError:
            raise ValueError(f"JSONTREE_PORT must be an integer, got {port!r}") from None
        return cls(
            root=root,
            presets_path=Path(presets) if presets else root / ".jsontree" / "presets.json",
            pattern=env.get("JSONTREE_PATTERN") or DEFAULT_PATTERN,
            host=env.get("JSONTREE_HOST") or DEFAULT_HOST,
            port=port,
            log_level=(env.get("JSONTREE_LOG_LEVEL") or "INFO").upper(),
        )

    def flask_config(self):
        return {"JSONTREE_PATTERN": self.pattern}


def setup_logging(level="INFO"):
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO), format=LOG_FORMAT)
