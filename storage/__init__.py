from .container import StorageContainer
from .contracts import DraftRepo

__all__ = [
    "StorageContainer",
    "DraftRepo",
]
