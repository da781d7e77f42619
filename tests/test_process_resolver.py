"""
Unit tests for agent/process_resolver.py
"""

import unittest
from unittest.mock import MagicMock, patch

import psutil

from agent.process_resolver import ProcessNameResolver


def _mock_proc(name="firefox", exe="/usr/lib/firefox/firefox"):
    proc = MagicMock()
    proc.name.return_value = name
    proc.exe.return_value = exe
    return proc


class TestSentinelResolution(unittest.TestCase):
    """PIDs without an owner resolve to the sentinel without any lookup."""

    def test_zero_and_negative_pids_are_unknown(self):
        resolver = ProcessNameResolver()
        with patch("agent.process_resolver.psutil.Process") as mock_process:
            self.assertEqual(resolver.resolve(0), "Unknown")
            self.assertEqual(resolver.resolve(-1), "Unknown")
        mock_process.assert_not_called()
        self.assertEqual(len(resolver), 0)
        self.assertNotIn(0, resolver)
        self.assertNotIn(-1, resolver)


class TestCache(unittest.TestCase):
    """Cache hits must not touch the OS again."""

    def test_second_lookup_uses_cache(self):
        resolver = ProcessNameResolver()
        with patch("agent.process_resolver.psutil.Process", return_value=_mock_proc()) as mock_process:
            first = resolver.resolve(100)
            second = resolver.resolve(100)
        self.assertEqual(first, "firefox")
        self.assertEqual(second, "firefox")
        self.assertEqual(mock_process.call_count, 1)
        self.assertIn(100, resolver)

    def test_clear_forgets_cached_names(self):
        resolver = ProcessNameResolver()
        with patch("agent.process_resolver.psutil.Process", return_value=_mock_proc()) as mock_process:
            resolver.resolve(100)
            resolver.clear()
            resolver.resolve(100)
        self.assertEqual(mock_process.call_count, 2)

    def test_instances_do_not_share_caches(self):
        first, second = ProcessNameResolver(), ProcessNameResolver()
        with patch("agent.process_resolver.psutil.Process", return_value=_mock_proc()):
            first.resolve(100)
        self.assertIn(100, first)
        self.assertNotIn(100, second)


class TestFailures(unittest.TestCase):
    """Lookup failures degrade to the sentinel and are not cached."""

    def test_no_such_process_is_unknown_and_not_cached(self):
        resolver = ProcessNameResolver()
        with patch("agent.process_resolver.psutil.Process", side_effect=psutil.NoSuchProcess(4242)):
            self.assertEqual(resolver.resolve(4242), "Unknown")
        self.assertNotIn(4242, resolver)

    def test_access_denied_is_unknown(self):
        resolver = ProcessNameResolver()
        with patch("agent.process_resolver.psutil.Process", side_effect=psutil.AccessDenied(4)):
            self.assertEqual(resolver.resolve(4), "Unknown")

    def test_failed_pid_is_resolved_again_later(self):
        resolver = ProcessNameResolver()
        with patch(
            "agent.process_resolver.psutil.Process",
            side_effect=[psutil.NoSuchProcess(300), _mock_proc(name="curl")],
        ) as mock_process:
            self.assertEqual(resolver.resolve(300), "Unknown")
            self.assertEqual(resolver.resolve(300), "curl")
        self.assertEqual(mock_process.call_count, 2)

    def test_name_failure_inside_oneshot_is_unknown(self):
        proc = _mock_proc()
        proc.name.side_effect = psutil.ZombieProcess(55)
        resolver = ProcessNameResolver()
        with patch("agent.process_resolver.psutil.Process", return_value=proc):
            self.assertEqual(resolver.resolve(55), "Unknown")


class TestShowPath(unittest.TestCase):
    """Optional executable path display."""

    def test_appends_path(self):
        resolver = ProcessNameResolver(show_path=True)
        with patch("agent.process_resolver.psutil.Process", return_value=_mock_proc()):
            self.assertEqual(resolver.resolve(100), "firefox (/usr/lib/firefox/firefox)")

    def test_unreadable_path_falls_back_to_name(self):
        proc = _mock_proc()
        proc.exe.side_effect = psutil.AccessDenied(100)
        resolver = ProcessNameResolver(show_path=True)
        with patch("agent.process_resolver.psutil.Process", return_value=proc):
            self.assertEqual(resolver.resolve(100), "firefox")

    def test_short_name_by_default(self):
        proc = _mock_proc()
        resolver = ProcessNameResolver()
        with patch("agent.process_resolver.psutil.Process", return_value=proc):
            self.assertEqual(resolver.resolve(100), "firefox")
        proc.exe.assert_not_called()


if __name__ == "__main__":
    unittest.main()
