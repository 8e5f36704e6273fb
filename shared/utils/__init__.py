# shared/utils/__init__.py
from .cache_events import CacheNamespaces, publish, cache_key, data_changed

__all__ = [
    'CacheNamespaces',
    'publish',
    'cache_key',
    'data_changed',
]
