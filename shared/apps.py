# shared/apps.py
from django.apps import AppConfig
import logging

logger = logging.getLogger(__name__)


class SharedConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'shared'
    verbose_name = 'Shared'

    def ready(self):
        """Connect cache invalidation receivers."""
        from .utils import cache_events  # noqa: F401
        logger.debug("Shared cache invalidation receivers connected")
