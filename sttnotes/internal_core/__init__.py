from .config import AppConfig, load_config
from .session_store import InMemorySessionStore, SessionStateTracker

__all__ = ["AppConfig", "load_config", "InMemorySessionStore", "SessionStateTracker"]
