from ._schema import SCHEMA_VERSION, SCHEMA_SQL
from .events import EventRepo
from .nodes import NodeRepo
from .uptimes import UptimeRepo
from .stakes import StakeRepo
from .rewards import RewardRepo
from .cursors import CursorRepo
from .manager import StorageManager

__all__ = [
    "SCHEMA_VERSION",
    "SCHEMA_SQL",
    "EventRepo",
    "NodeRepo",
    "UptimeRepo",
    "StakeRepo",
    "RewardRepo",
    "CursorRepo",
    "StorageManager",
]
