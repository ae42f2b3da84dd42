from __future__ import annotations

import threading
import unittest

from plotview_core.core.signal_channel import WatchSignalChannel


class WatchSignalChannelTests(unittest.TestCase):
    def test_offers_collapse_until_taken(self) -> None:
        wakes: list[int] = []
        channel = WatchSignalChannel(wake=lambda: wakes.append(1))
        self.assertTrue(channel.offer())
        self.assertFalse(channel.offer())
        self.assertFalse(channel.offer())
        self.assertEqual(len(wakes), 1)
        self.assertTrue(channel.take())
        self.assertFalse(channel.take())
        self.assertEqual(channel.offered_count, 3)

    def test_offer_after_take_wakes_again(self) -> None:
        wakes: list[int] = []
        channel = WatchSignalChannel(wake=lambda: wakes.append(1))
        channel.offer()
        channel.take()
        channel.offer()
        self.assertEqual(len(wakes), 2)
        self.assertEqual(channel.wake_count, 2)

    def test_bind_flushes_signal_offered_before_binding(self) -> None:
        channel = WatchSignalChannel()
        channel.offer()
        wakes: list[int] = []
        channel.bind(lambda: wakes.append(1))
        self.assertEqual(wakes, [1])
        self.assertTrue(channel.pending)

    def test_bind_without_pending_does_not_wake(self) -> None:
        channel = WatchSignalChannel()
        wakes: list[int] = []
        channel.bind(lambda: wakes.append(1))
        self.assertEqual(wakes, [])

    def test_failed_wake_empties_slot_so_next_offer_retries(self) -> None:
        results = [False, True]
        calls: list[int] = []

        def wake() -> bool:
            calls.append(1)
            return results.pop(0)

        channel = WatchSignalChannel(wake=wake)
        with self.assertLogs("plotview_core.core.signal_channel", level="WARNING"):
            self.assertFalse(channel.offer())
        self.assertFalse(channel.pending)
        self.assertEqual(channel.wake_count, 0)
        self.assertTrue(channel.offer())
        self.assertTrue(channel.pending)
        self.assertEqual(len(calls), 2)
        self.assertEqual(channel.wake_count, 1)

    def test_failed_wake_on_bind_empties_slot(self) -> None:
        channel = WatchSignalChannel()
        channel.offer()
        with self.assertLogs("plotview_core.core.signal_channel", level="WARNING"):
            channel.bind(lambda: False)
        self.assertFalse(channel.pending)

    def test_concurrent_offers_wake_once(self) -> None:
        wakes: list[int] = []
        lock = threading.Lock()

        def wake() -> None:
            with lock:
                wakes.append(1)

        channel = WatchSignalChannel(wake=wake)
        threads = [threading.Thread(target=lambda: [channel.offer() for _ in range(200)]) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(len(wakes), 1)
        self.assertEqual(channel.offered_count, 800)
        self.assertTrue(channel.take())


if __name__ == "__main__":
    unittest.main()
