from django.apps import AppConfig
from django.conf import settings


class RentalsConfig(AppConfig):
    name = 'apps.rentals'
    label = 'rentals'

    def ready(self):
        from apps.core.cache import ReferenceDataCache

        # Customer and dumpster lists used by the rental forms
        self.reference_cache = ReferenceDataCache(ttl_seconds=settings.REFERENCE_CACHE_TTL)
