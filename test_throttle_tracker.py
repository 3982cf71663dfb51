import asyncio
import unittest
from unittest.mock import AsyncMock

from fake_remote import throttle
from shopbulk.core.scheduler import ManualScheduler
from shopbulk.core.throttle import ThrottleTracker
from shopbulk.models.batch import ThrottleState


class TestThrottleTracker(unittest.TestCase):
    def test_last_snapshot_wins(self):
        tracker = ThrottleTracker(throttle(20000), project_restore=False)
        tracker.observe(throttle(500))
        tracker.observe(throttle(1500))
        self.assertEqual(tracker.budget().currently_available, 1500)
        self.assertEqual(tracker.observations, 2)

    def test_missing_snapshot_is_ignored(self):
        tracker = ThrottleTracker(throttle(700), project_restore=False)
        tracker.observe(None)
        self.assertEqual(tracker.budget().currently_available, 700)
        self.assertEqual(tracker.observations, 0)

    def test_failed_probe_keeps_state(self):
        async def run():
            probe = AsyncMock(return_value=None)
            tracker = ThrottleTracker(throttle(300), probe_fn=probe, project_restore=False)
            state = await tracker.probe()
            self.assertEqual(state.currently_available, 300)
            self.assertEqual(tracker.probes, 1)

        asyncio.run(run())

    def test_probe_overwrites_state(self):
        async def run():
            probe = AsyncMock(return_value=throttle(1234))
            tracker = ThrottleTracker(throttle(10), probe_fn=probe, project_restore=False)
            await tracker.probe()
            self.assertEqual(tracker.budget().currently_available, 1234)

        asyncio.run(run())

    def test_restore_projection_is_capped_at_capacity(self):
        scheduler = ManualScheduler()
        tracker = ThrottleTracker(throttle(0), scheduler=scheduler)
        tracker.observe(ThrottleState(maximum_available=2000, currently_available=100, restore_rate=100))

        scheduler.advance(5)
        self.assertEqual(tracker.budget().currently_available, 600)

        scheduler.advance(100)
        self.assertEqual(tracker.budget().currently_available, 2000)

    def test_debit_never_goes_negative(self):
        tracker = ThrottleTracker(throttle(100), project_restore=False)
        self.assertEqual(tracker.debit(40).currently_available, 60)
        self.assertEqual(tracker.debit(500).currently_available, 0)

    def test_from_payload(self):
        state = ThrottleState.from_payload(
            {"maximumAvailable": 2000.0, "currentlyAvailable": 1990, "restoreRate": 100.0}
        )
        self.assertEqual(state.currently_available, 1990)
        self.assertIsNone(ThrottleState.from_payload({"currentlyAvailable": 10}))
        self.assertIsNone(ThrottleState.from_payload(None))


if __name__ == "__main__":
    unittest.main()
