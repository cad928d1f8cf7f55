import unittest

from store_scrap.core.errors import TransportError
from store_scrap.refresh.retry import with_retry


class RecordingSleep:
    def __init__(self) -> None:
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FlakyOperation:
    def __init__(self, failures: int, error: Exception | None = None) -> None:
        self.failures = failures
        self.error = error or TransportError("boom")
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


class WithRetryTests(unittest.IsolatedAsyncioTestCase):
    async def test_returns_first_success_without_sleeping(self) -> None:
        sleep = RecordingSleep()
        operation = FlakyOperation(failures=0)

        result = await with_retry(operation, [0.3, 0.8, 1.5], sleep=sleep)

        self.assertEqual(result, "ok")
        self.assertEqual(operation.calls, 1)
        self.assertEqual(sleep.calls, [])

    async def test_sleeps_configured_delays_between_attempts(self) -> None:
        sleep = RecordingSleep()
        operation = FlakyOperation(failures=2)

        result = await with_retry(operation, [0.3, 0.8, 1.5], sleep=sleep)

        self.assertEqual(result, "ok")
        self.assertEqual(operation.calls, 3)
        self.assertEqual(sleep.calls, [0.3, 0.8])

    async def test_raises_last_failure_after_all_attempts(self) -> None:
        sleep = RecordingSleep()
        operation = FlakyOperation(failures=10)

        with self.assertRaises(TransportError):
            await with_retry(operation, [0.1, 0.2], sleep=sleep)

        self.assertEqual(operation.calls, 3)
        self.assertEqual(sleep.calls, [0.1, 0.2])

    async def test_no_delays_means_single_attempt(self) -> None:
        operation = FlakyOperation(failures=1)

        with self.assertRaises(TransportError):
            await with_retry(operation, [], sleep=RecordingSleep())

        self.assertEqual(operation.calls, 1)

    async def test_other_errors_are_not_retried(self) -> None:
        sleep = RecordingSleep()
        operation = FlakyOperation(failures=1, error=ValueError("bad payload"))

        with self.assertRaises(ValueError):
            await with_retry(operation, [0.1, 0.2], sleep=sleep)

        self.assertEqual(operation.calls, 1)
        self.assertEqual(sleep.calls, [])


if __name__ == "__main__":
    unittest.main()
