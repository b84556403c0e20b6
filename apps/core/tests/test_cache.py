"""
Unit tests for the reference data cache.
Time is driven by a fake clock so expiry is deterministic.
"""
from django.test import SimpleTestCase

from apps.core.cache import ReferenceDataCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class ReferenceDataCacheTest(SimpleTestCase):
    """Test get/set/invalidate and TTL expiry."""

    def setUp(self):
        self.clock = FakeClock()
        self.cache = ReferenceDataCache(ttl_seconds=60, clock=self.clock)

    def test_get_missing_returns_default(self):
        self.assertIsNone(self.cache.get('customers'))
        self.assertEqual(self.cache.get('customers', []), [])

    def test_set_then_get(self):
        self.cache.set('customers', ['Acme'])
        self.assertEqual(self.cache.get('customers'), ['Acme'])
        self.assertIn('customers', self.cache)

    def test_entry_expires_after_ttl(self):
        """Entries are fresh until exactly ttl seconds have passed."""
        self.cache.set('customers', ['Acme'])

        self.clock.advance(59)
        self.assertEqual(self.cache.get('customers'), ['Acme'])

        self.clock.advance(1)
        self.assertIsNone(self.cache.get('customers'))
        self.assertNotIn('customers', self.cache)

    def test_invalidate(self):
        self.cache.set('customers', ['Acme'])
        self.assertTrue(self.cache.invalidate('customers'))
        self.assertIsNone(self.cache.get('customers'))
        self.assertFalse(self.cache.invalidate('customers'))

    def test_get_or_load_calls_loader_once(self):
        calls = []

        def loader():
            calls.append(1)
            return ['T1', 'T2']

        self.assertEqual(self.cache.get_or_load('dumpsters', loader), ['T1', 'T2'])
        self.assertEqual(self.cache.get_or_load('dumpsters', loader), ['T1', 'T2'])
        self.assertEqual(len(calls), 1)

        self.clock.advance(61)
        self.cache.get_or_load('dumpsters', loader)
        self.assertEqual(len(calls), 2)

    def test_cached_empty_list_is_a_hit(self):
        self.cache.set('customers', [])
        self.assertEqual(self.cache.get_or_load('customers', lambda: ['reloaded']), [])

    def test_clear(self):
        self.cache.set('a', 1)
        self.cache.set('b', 2)
        self.cache.clear()
        self.assertNotIn('a', self.cache)
        self.assertNotIn('b', self.cache)

    def test_rejects_non_positive_ttl(self):
        with self.assertRaises(ValueError):
            ReferenceDataCache(ttl_seconds=0)
