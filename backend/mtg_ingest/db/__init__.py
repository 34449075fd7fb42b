from mtg_ingest.db.base import Base
from mtg_ingest.db.session import get_engine, get_session_maker
from mtg_ingest.db.transaction import atomic

__all__ = ["Base", "atomic", "get_engine", "get_session_maker"]
