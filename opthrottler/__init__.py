from .config import InputFormat, ReplayConfig, SqlStoreConfig
from .db import Applier, MongoStore, SqlDocumentStore
from .oplog import convert_entry, iter_entries
from .rate import RateController, wait_before
from .replay import ReplayDriver, ReplayResult, ReplayState, replay_stream

__version__ = "0.1.0"

__all__ = [
    "Applier",
    "InputFormat",
    "MongoStore",
    "RateController",
    "ReplayConfig",
    "ReplayDriver",
    "ReplayResult",
    "ReplayState",
    "SqlDocumentStore",
    "SqlStoreConfig",
    "convert_entry",
    "iter_entries",
    "replay_stream",
    "wait_before",
]
