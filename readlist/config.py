"""Settings read from the environment."""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigError

DEFAULT_STORE = Path.home() / ".readlist.d"
STORE_FILE = "bookmarks.json"

MIN_BATCH = 1
MAX_BATCH = 5


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """Runtime configuration.

    Attributes:
        store_dir: Directory holding the local store file.
        remote: Remote store location; a directory path or an http(s) URL.
        user: User whose remote collection is synced.
        token: Bearer token sent to an HTTP remote.
        proxy_url: Metadata-fetch proxy endpoint; None fetches directly.
        batch_size: Records enriched concurrently (1-5).
        batch_delay: Seconds to wait between enrichment batches.
        timeout: Network timeout in seconds.
    """

    store_dir: Path = DEFAULT_STORE
    remote: Optional[str] = None
    user: str = "local"
    token: Optional[str] = None
    proxy_url: Optional[str] = None
    batch_size: int = 3
    batch_delay: float = 1.0
    timeout: float = 5.0

    @property
    def store_path(self) -> Path:
        return Path(self.store_dir) / STORE_FILE

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        batch = _env_int(env, "READLIST_BATCH_SIZE", 3)
        return cls(
            store_dir=Path(env.get("READLIST_DIR") or DEFAULT_STORE),
            remote=env.get("READLIST_REMOTE") or None,
            user=env.get("READLIST_USER") or "local",
            token=env.get("READLIST_TOKEN") or None,
            proxy_url=env.get("READLIST_PROXY") or None,
            batch_size=max(MIN_BATCH, min(MAX_BATCH, batch)),
            batch_delay=max(0.0, _env_float(env, "READLIST_BATCH_DELAY", 1.0)),
            timeout=_env_float(env, "READLIST_TIMEOUT", 5.0),
        )

    def override(self, **changes) -> "Settings":
        """Return a copy with the non-None values of ``changes`` applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
