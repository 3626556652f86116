from .documents import SyncDocument

__all__ = [
    'SyncDocument',
]
