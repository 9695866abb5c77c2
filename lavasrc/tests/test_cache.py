from unittest.mock import Mock, patch

from django.core.cache import cache as default_cache
from django.test import SimpleTestCase, override_settings

from lavasrc.cache import TrackMetadataCache


class TestCacheKeys(SimpleTestCase):
    """Test key layout and namespace checks."""

    def setUp(self):
        default_cache.clear()
        self.cache = TrackMetadataCache(namespace="test:keys")

    def test_plain_ids_are_kept(self):
        """Test that Spotify ids appear verbatim in the key."""
        self.assertEqual(self.cache._key("4PTG3Z6ehGkBFwjybzWkR8"), "test:keys:g1:4PTG3Z6ehGkBFwjybzWkR8")

    def test_other_ids_are_hashed(self):
        """Test that ids with spaces or too many characters are hashed."""
        spaced = self.cache._key("abc DEF/ghi")
        self.assertTrue(spaced.startswith("test:keys:g1:#"))
        self.assertNotIn(" ", spaced)

        a = self.cache._key("x" * 100 + "a")
        b = self.cache._key("x" * 100 + "b")
        self.assertNotEqual(a, b)
        self.assertLess(len(a), 250)

    def test_generation_is_part_of_the_key(self):
        """Test that invalidate_all moves keys to the next generation."""
        self.cache.invalidate_all()
        self.assertEqual(self.cache._key("abc"), "test:keys:g2:abc")

    def test_invalid_namespaces(self):
        """Test that namespaces memcached would reject are refused."""
        for namespace in ("", "has space", "tab\there", "x" * 200):
            with self.assertRaises(ValueError):
                TrackMetadataCache(namespace=namespace)


class TestTrackMetadataCache(SimpleTestCase):
    """Test expiry, invalidation and error handling."""

    def setUp(self):
        default_cache.clear()
        self.cache = TrackMetadataCache(namespace="test:tracks")

    def test_put_and_get(self):
        """Test a stored value is returned."""
        self.cache.put("t1", {"id": "t1"})
        self.assertEqual(self.cache.get("t1"), {"id": "t1"})

    def test_miss_returns_default(self):
        """Test misses return the default."""
        self.assertIsNone(self.cache.get("missing"))
        self.assertEqual(self.cache.get("missing", "fallback"), "fallback")

    @patch("lavasrc.cache.time")
    def test_expires_after_write(self, mock_time):
        """Test entries die an hour after they were written."""
        mock_time.time.return_value = 1000.0
        self.cache.put("t1", {"id": "t1"})

        mock_time.time.return_value = 1000.0 + 3601
        self.assertIsNone(self.cache.get("t1"))
        # expired entries are dropped
        mock_time.time.return_value = 1000.0
        self.assertIsNone(self.cache.get("t1"))

    @patch("lavasrc.cache.time")
    @patch("lavasrc.cache.caches")
    def test_touch_never_extends_past_write_deadline(self, mock_caches, mock_time):
        """Test a hit slides the access deadline, clamped to the write deadline."""
        backend = Mock()
        backend.get_or_set.return_value = 1
        backend.get.return_value = ({"id": "t1"}, 1000.0)
        mock_caches.__getitem__.return_value = backend

        mock_time.time.return_value = 1000.0 + 3500
        self.assertEqual(self.cache.get("t1"), {"id": "t1"})
        backend.touch.assert_called_once()
        self.assertEqual(backend.touch.call_args[0][1], 100)

        backend.touch.reset_mock()
        mock_time.time.return_value = 1000.0 + 10
        self.cache.get("t1")
        self.assertEqual(backend.touch.call_args[0][1], 600)

    def test_invalidate(self):
        """Test invalidating one key leaves the others."""
        self.cache.put("t1", "a")
        self.cache.put("t2", "b")
        self.cache.invalidate("t1")
        self.assertIsNone(self.cache.get("t1"))
        self.assertEqual(self.cache.get("t2"), "b")

    def test_invalidate_all(self):
        """Test invalidate_all drops every entry and the cache keeps working."""
        self.cache.put("t1", "a")
        self.cache.put("t2", "b")
        self.cache.invalidate_all()
        self.assertIsNone(self.cache.get("t1"))
        self.assertIsNone(self.cache.get("t2"))

        self.cache.put("t1", "c")
        self.assertEqual(self.cache.get("t1"), "c")

    def test_invalidate_all_is_per_namespace(self):
        """Test invalidate_all leaves other namespaces alone."""
        other = TrackMetadataCache(namespace="test:other")
        other.put("t1", "other")
        self.cache.put("t1", "mine")
        self.cache.invalidate_all()
        self.assertEqual(other.get("t1"), "other")

    def test_get_or_set(self):
        """Test get_or_set computes once."""
        compute = Mock(return_value={"id": "t1"})
        self.assertEqual(self.cache.get_or_set("t1", compute), {"id": "t1"})
        self.assertEqual(self.cache.get_or_set("t1", compute), {"id": "t1"})
        compute.assert_called_once()

    def test_get_or_set_skips_none(self):
        """Test None results are not stored."""
        compute = Mock(return_value=None)
        self.cache.get_or_set("t1", compute)
        self.cache.get_or_set("t1", compute)
        self.assertEqual(compute.call_count, 2)

    @patch("lavasrc.cache.caches")
    def test_backend_errors_are_logged(self, mock_caches):
        """Test a dead backend is logged and never raises, including generation lookups."""
        backend = Mock()
        backend.get_or_set.side_effect = ConnectionError("redis down")
        mock_caches.__getitem__.return_value = backend

        with self.assertLogs("lavasrc.cache", level="ERROR") as logs:
            self.assertEqual(self.cache.get("t1", "default"), "default")
            self.cache.put("t1", "value")
            self.cache.invalidate("t1")
            self.cache.invalidate_all()
        self.assertEqual(len(logs.records), 4)
        backend.get.assert_not_called()

    @patch("lavasrc.cache.time")
    @patch("lavasrc.cache.caches")
    def test_touch_and_delete_errors_are_logged(self, mock_caches, mock_time):
        """Test failures while touching or dropping an entry return the default."""
        backend = Mock()
        backend.get_or_set.return_value = 1
        backend.get.return_value = ("value", 1000.0)
        backend.touch.side_effect = ConnectionError("redis down")
        backend.delete.side_effect = ConnectionError("redis down")
        mock_caches.__getitem__.return_value = backend

        with self.assertLogs("lavasrc.cache", level="ERROR") as logs:
            mock_time.time.return_value = 1010.0
            self.assertEqual(self.cache.get("t1", "default"), "default")
            mock_time.time.return_value = 1000.0 + 3601
            self.assertEqual(self.cache.get("t1", "default"), "default")
        self.assertEqual(len(logs.records), 2)

    @override_settings(LAVASRC={"CACHE": {"EXPIRE_AFTER_ACCESS": 5}})
    def test_from_settings(self):
        """Test settings override the defaults one key at a time."""
        cache = TrackMetadataCache.from_settings()
        self.assertEqual(cache.expire_after_access, 5)
        self.assertEqual(cache.expire_after_write, 3600)
        self.assertEqual(cache.alias, "default")
