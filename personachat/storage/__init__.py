"""
Message store factory.

Usage:
    from personachat.storage import make_store
    store = make_store(cfg)

Adding a new store:
    1. Create personachat/storage/<name>.py implementing MessageStore.
    2. Add a branch to make_store below.
    3. Set  storage.backend: <name>  in config.yaml.
"""

from personachat.storage.base import MessageStore
from personachat.storage.models import ConversationTurn, StoredMessage


def make_store(cfg: dict) -> MessageStore:
    """
    Instantiate the configured message store.

    Raises:
        ValueError: If storage.backend is not a known store.
    """
    s_cfg = cfg.get("storage", {})
    backend = s_cfg.get("backend", "sqlite")

    if backend == "sqlite":
        from personachat.storage.sqlite_store import SQLiteStore
        return SQLiteStore(s_cfg.get("sqlite_path", "./data/messages.db"))

    if backend == "supabase":
        from personachat.storage.supabase_store import SupabaseStore
        return SupabaseStore(
            url=s_cfg.get("supabase_url", ""),
            api_key=s_cfg.get("supabase_key", ""),
            table=s_cfg.get("table", "messages"),
            timeout=float(s_cfg.get("timeout", 10)),
        )

    raise ValueError(
        f"Unknown message store: '{backend}'. Available: sqlite, supabase"
    )


__all__ = ["ConversationTurn", "MessageStore", "StoredMessage", "make_store"]
