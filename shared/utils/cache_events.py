# shared/utils/cache_events.py
"""
Explicit cache invalidation events.

A service that mutates data publishes the namespaces it touched. Once the
surrounding transaction commits, `data_changed` fires and every namespace's
generation counter is bumped, which orphans the cached values built under the
previous generation. API views echo the same namespace list back to the client
so the dashboard knows which of its own queries to refetch.
"""
import logging

from django.core.cache import cache
from django.db import transaction
from django.dispatch import Signal, receiver

logger = logging.getLogger(__name__)

# Sent with `namespaces=[...]` after a committed mutation
data_changed = Signal()

GENERATION_KEY = "cache_generation:{namespace}"


class CacheNamespaces:
    SESSIONS = 'sessions'
    PACKS = 'packs'
    FEE_PLANS = 'fee-plans'
    PAYMENTS = 'payments'
    REMINDERS = 'reminders'
    BULK_UPLOADS = 'bulk-uploads'
    STUDENTS = 'students'


def publish(sender, *namespaces):
    """
    Announce that data in `namespaces` changed.

    Args:
        sender: The service class publishing the event
        *namespaces: CacheNamespaces values

    Returns:
        list: Sorted namespace names, suitable for an API response
    """
    names = sorted(set(namespaces))
    transaction.on_commit(lambda: data_changed.send(sender=sender, namespaces=names))
    return names


def get_generation(namespace):
    """Current generation of a namespace, starting at 1."""
    key = GENERATION_KEY.format(namespace=namespace)
    generation = cache.get(key)
    if generation is None:
        cache.add(key, 1, timeout=None)
        generation = cache.get(key, 1)
    return generation


def cache_key(namespace, *parts):
    """Build a cache key bound to the namespace's current generation."""
    return ":".join([namespace, f"g{get_generation(namespace)}", *[str(part) for part in parts]])


@receiver(data_changed)
def bump_generations(sender, namespaces, **kwargs):
    for namespace in namespaces:
        key = GENERATION_KEY.format(namespace=namespace)
        try:
            cache.incr(key)
        except ValueError:
            # Key evicted or never read; any value above 1 orphans old entries
            cache.set(key, 2, timeout=None)
        logger.debug(f"Cache namespace '{namespace}' invalidated by {getattr(sender, '__name__', sender)}")
