from .applier import Applier
from .helpers import apply_update
from .mongo import MongoStore
from .session import DbSession
from .sql import SqlDocumentStore
from .store import DocumentStore

__all__ = [
    "Applier",
    "DbSession",
    "DocumentStore",
    "MongoStore",
    "SqlDocumentStore",
    "apply_update",
]
