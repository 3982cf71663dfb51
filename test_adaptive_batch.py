import asyncio
import unittest

from fake_remote import FakeRemote, throttle
from shopbulk.controllers.adaptive_batch import EngineConfig, run_adaptive_batch
from shopbulk.core.exceptions import AllBatchesFailedError, FatalStuckError, ThrottledError, TransportError
from shopbulk.core.scheduler import ManualScheduler
from shopbulk.models.batch import BatchOutcome, ExecutionResponse, Operation


def _ops(count):
    return [Operation(kind="inventory_set_on_hand", target_id=f"item-{i}") for i in range(count)]


def _config(available=20000.0, **overrides):
    return EngineConfig(initial_throttle=throttle(available), **overrides)


class TestRunAdaptiveBatch(unittest.TestCase):
    def test_single_round_when_budget_is_plenty(self):
        async def run():
            scheduler = ManualScheduler()
            remote = FakeRemote(call_throttle=throttle(19970))

            result = await run_adaptive_batch(
                _ops(600), remote, 250, 1, 10, config=_config(), scheduler=scheduler
            )

            self.assertEqual(result.batch_count, 3)
            self.assertEqual(result.round_count, 1)
            self.assertEqual(result.attempted_count, 600)
            self.assertEqual(result.updated_count, 600)
            self.assertEqual(result.failed_count, 0)
            self.assertEqual(result.retry_count, 0)
            self.assertEqual(len(remote.executed), 3)
            self.assertEqual(remote.probe_calls, 1)

        asyncio.run(run())

    def test_tight_budget_runs_one_batch_per_round(self):
        async def run():
            scheduler = ManualScheduler()
            remote = FakeRemote(call_throttle=throttle(10))

            result = await run_adaptive_batch(
                _ops(600),
                remote,
                250,
                1,
                50,
                config=_config(available=10, round_delay=0),
                scheduler=scheduler,
            )

            self.assertEqual(result.round_count, 3)
            self.assertEqual(result.updated_count, 600)
            self.assertEqual([b.index for b in remote.executed], [0, 1, 2])

        asyncio.run(run())

    def test_round_delay_between_rounds_only(self):
        async def run():
            scheduler = ManualScheduler()
            remote = FakeRemote(call_throttle=throttle(10))

            await run_adaptive_batch(
                _ops(2), remote, 1, 1, 50, config=_config(available=10), scheduler=scheduler
            )

            self.assertEqual(scheduler.sleeps, [0.05])

        asyncio.run(run())

    def test_user_errors_count_against_updated(self):
        async def run():
            def responder(batch, call_number):
                if batch.index == 1:
                    return ExecutionResponse(
                        data={}, user_errors=[{"field": ["input"], "message": "Invalid"}], throttle=throttle(19000)
                    )
                return ExecutionResponse(data={}, throttle=throttle(19000))

            remote = FakeRemote(responder=responder)
            result = await run_adaptive_batch(
                _ops(600), remote, 250, 1, 10, config=_config(), scheduler=ManualScheduler()
            )

            self.assertEqual(result.updated_count, 599)
            self.assertEqual(result.failed_count, 1)
            self.assertEqual(len(remote.executed), 3)
            self.assertEqual(result.failed_results[0].outcome, BatchOutcome.PARTIAL_USER_ERROR)

        asyncio.run(run())

    def test_throttled_batch_retried_within_round(self):
        async def run():
            seen = set()

            def responder(batch, call_number):
                if batch.index == 2 and batch.index not in seen:
                    seen.add(batch.index)
                    raise ThrottledError("Throttled", throttle=throttle(100))
                return ExecutionResponse(data={}, throttle=throttle(5000))

            scheduler = ManualScheduler()
            remote = FakeRemote(responder=responder)
            result = await run_adaptive_batch(
                _ops(600), remote, 250, 1, 10, config=_config(), scheduler=scheduler
            )

            self.assertEqual(result.round_count, 1)
            self.assertEqual(result.retry_count, 1)
            self.assertEqual(result.updated_count, 600)
            self.assertEqual(result.results[2].attempt, 2)
            self.assertIn(1.0, scheduler.sleeps)

        asyncio.run(run())

    def test_all_transport_failures_raise_with_result(self):
        async def run():
            def responder(batch, call_number):
                raise TransportError("API_ERROR: 503")

            remote = FakeRemote(responder=responder)
            with self.assertRaises(AllBatchesFailedError) as ctx:
                await run_adaptive_batch(
                    _ops(600), remote, 250, 1, 10, config=_config(), scheduler=ManualScheduler()
                )

            self.assertEqual(ctx.exception.result.failed_count, 600)
            self.assertEqual(ctx.exception.result.updated_count, 0)

        asyncio.run(run())

    def test_one_failed_batch_does_not_fail_the_run(self):
        async def run():
            def responder(batch, call_number):
                if batch.index == 0:
                    raise TransportError("API_ERROR: 500")
                return ExecutionResponse(data={}, throttle=throttle(19000))

            remote = FakeRemote(responder=responder)
            result = await run_adaptive_batch(
                _ops(600), remote, 250, 1, 10, config=_config(), scheduler=ManualScheduler()
            )

            self.assertEqual(result.updated_count, 350)
            self.assertEqual(result.failed_count, 250)

        asyncio.run(run())

    def test_empty_input_makes_no_calls(self):
        async def run():
            remote = FakeRemote()
            result = await run_adaptive_batch([], remote, 250, 1, 10, scheduler=ManualScheduler())
            self.assertEqual(result.batch_count, 0)
            self.assertEqual(remote.executed, [])
            self.assertEqual(remote.probe_calls, 0)

        asyncio.run(run())

    def test_exhausted_budget_raises_fatal_stuck(self):
        async def run():
            remote = FakeRemote(probe_throttle_state=throttle(0))
            config = _config(available=0, max_stuck_cycles=3)

            with self.assertRaises(FatalStuckError):
                await run_adaptive_batch(_ops(10), remote, 250, 1, 10, config=config, scheduler=ManualScheduler())

            self.assertEqual(remote.executed, [])
            self.assertEqual(remote.probe_calls, 4)

        asyncio.run(run())


if __name__ == "__main__":
    unittest.main()
