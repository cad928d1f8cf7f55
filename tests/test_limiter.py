import asyncio
import unittest

from store_scrap.refresh.limiter import ConcurrencyLimiter


class ConcurrencyLimiterTests(unittest.IsolatedAsyncioTestCase):
    async def test_never_exceeds_limit(self) -> None:
        limiter = ConcurrencyLimiter(2)
        running = 0
        peak = 0

        async def task() -> None:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        await asyncio.gather(*(limiter.submit(task) for _ in range(7)))

        self.assertEqual(peak, 2)
        self.assertEqual(limiter.active, 0)
        self.assertEqual(limiter.waiting, 0)

    async def test_queued_tasks_start_in_submission_order(self) -> None:
        limiter = ConcurrencyLimiter(1)
        started = []
        release = asyncio.Event()

        def make(index: int):
            async def task() -> int:
                started.append(index)
                if index == 0:
                    await release.wait()
                return index

            return task

        pending = [asyncio.create_task(limiter.submit(make(i))) for i in range(5)]
        await asyncio.sleep(0)
        self.assertEqual(started, [0])
        self.assertEqual(limiter.waiting, 4)

        release.set()
        results = await asyncio.gather(*pending)

        self.assertEqual(started, [0, 1, 2, 3, 4])
        self.assertEqual(results, [0, 1, 2, 3, 4])

    async def test_failure_propagates_without_blocking_queue(self) -> None:
        limiter = ConcurrencyLimiter(1)

        async def failing() -> None:
            raise RuntimeError("upstream down")

        async def succeeding() -> str:
            return "ok"

        results = await asyncio.gather(
            limiter.submit(failing),
            limiter.submit(succeeding),
            return_exceptions=True,
        )

        self.assertIsInstance(results[0], RuntimeError)
        self.assertEqual(results[1], "ok")
        self.assertEqual(limiter.active, 0)

    def test_rejects_non_positive_limit(self) -> None:
        with self.assertRaises(ValueError):
            ConcurrencyLimiter(0)


if __name__ == "__main__":
    unittest.main()
