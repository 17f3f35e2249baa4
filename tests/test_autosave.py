import os
import sys
import time
import threading
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from autosave import AutosaveTask


class AutosaveTaskTestCase(unittest.TestCase):
    def test_saves_on_start_and_periodically(self) -> None:
        calls = []
        task = AutosaveTask(lambda: calls.append(time.time()), interval=0.02)
        task.start()
        self.assertEqual(len(calls), 1)
        time.sleep(0.15)
        task.stop()
        self.assertGreaterEqual(len(calls), 3)
        self.assertFalse(task.running)

        count = len(calls)
        time.sleep(0.06)
        self.assertEqual(len(calls), count)

    def test_failures_are_swallowed(self) -> None:
        attempts = []

        def flaky() -> None:
            attempts.append(1)
            raise OSError("disk full")

        task = AutosaveTask(flaky, interval=0.02)
        task.start()
        time.sleep(0.08)
        task.stop()
        self.assertGreaterEqual(len(attempts), 2)

    def test_stop_waits_for_inflight_save(self) -> None:
        started = threading.Event()
        finished = []

        def slow() -> None:
            if threading.current_thread().name == "repstack-autosave":
                started.set()
                time.sleep(0.1)
                finished.append(1)

        task = AutosaveTask(slow, interval=0.01)
        task.start()
        self.assertTrue(started.wait(1))
        task.stop()
        self.assertEqual(finished, [1])

    def test_invalid_interval(self) -> None:
        with self.assertRaises(ValueError):
            AutosaveTask(lambda: None, interval=0)


if __name__ == "__main__":
    unittest.main()
