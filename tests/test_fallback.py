import unittest
from typing import Optional

from store_scrap.core.errors import TransportError
from store_scrap.core.models import Empty, ErrorRecord, Fresh, Stale, StoreResult
from store_scrap.refresh.fallback import apply_fallback, fetch_with_fallback, resolve_outcome
from store_scrap.sources.interfaces import DataSource

NOW = "2026-01-02T03:04:05Z"


def make_result(**overrides) -> StoreResult:
    values = dict(
        country="US",
        store="apple",
        updated_at="2026-01-01T00:00:00Z",
        new=[{"id": "1"}],
        updated=[{"id": "2"}, {"id": "3"}],
        errors=[ErrorRecord(message="old partial failure")],
    )
    values.update(overrides)
    return StoreResult(**values)


class StubSource(DataSource):
    def __init__(self, *, result: Optional[StoreResult] = None, error: Optional[Exception] = None) -> None:
        self._result = result
        self._error = error
        self.previous_seen = []

    @property
    def name(self) -> str:
        return "apple"

    async def fetch(self, country: str, previous: Optional[StoreResult] = None) -> StoreResult:
        self.previous_seen.append(previous)
        if self._error is not None:
            raise self._error
        assert self._result is not None
        return self._result


class ApplyFallbackTests(unittest.TestCase):
    def test_previous_value_is_preserved_with_one_extra_error(self) -> None:
        previous = make_result()

        outcome = apply_fallback(
            store="apple",
            country="US",
            error=TransportError("Request failed (503)"),
            previous=previous,
            now=NOW,
        )

        self.assertIsInstance(outcome, Stale)
        value = resolve_outcome(outcome)
        self.assertEqual(len(value.errors), len(previous.errors) + 1)
        self.assertEqual(value.errors[-1], ErrorRecord(message="Request failed (503)", preserved=True))
        self.assertEqual(value.new, previous.new)
        self.assertEqual(value.updated, previous.updated)
        self.assertEqual(value.preserved_at, NOW)
        self.assertEqual(value.updated_at, previous.updated_at)
        self.assertEqual(value.preserved_count, 1)

    def test_previous_value_is_not_mutated(self) -> None:
        previous = make_result()

        apply_fallback(store="apple", country="US", error=TransportError("x"), previous=previous, now=NOW)

        self.assertEqual(len(previous.errors), 1)
        self.assertIsNone(previous.preserved_at)

    def test_repeated_preservation_counts_up(self) -> None:
        value = make_result()
        for _ in range(3):
            value = resolve_outcome(
                apply_fallback(store="apple", country="US", error=TransportError("x"), previous=value, now=NOW)
            )

        self.assertEqual(value.preserved_count, 3)
        self.assertEqual(len(value.errors), 4)

    def test_without_previous_value_returns_empty_with_error(self) -> None:
        outcome = apply_fallback(
            store="google",
            country="FR",
            error=TransportError("timeout"),
            previous=None,
            now=NOW,
        )

        self.assertIsInstance(outcome, Empty)
        value = resolve_outcome(outcome)
        self.assertEqual(value.new, [])
        self.assertEqual(value.updated, [])
        self.assertEqual(value.errors, [ErrorRecord(message="timeout", preserved=False)])
        self.assertEqual(value.store, "google")
        self.assertEqual(value.country, "FR")
        self.assertEqual(value.updated_at, NOW)

    def test_blank_error_message_uses_exception_name(self) -> None:
        value = resolve_outcome(
            apply_fallback(store="apple", country="US", error=TimeoutError(), previous=None, now=NOW)
        )

        self.assertEqual(value.errors[0].message, "TimeoutError")


class FetchWithFallbackTests(unittest.IsolatedAsyncioTestCase):
    async def test_success_is_fresh_and_resets_preservation(self) -> None:
        fetched = make_result(preserved_at=NOW, preserved_count=2)
        source = StubSource(result=fetched)

        outcome = await fetch_with_fallback(source, "US", None)

        self.assertIsInstance(outcome, Fresh)
        self.assertEqual(outcome.value.preserved_count, 0)
        self.assertIsNone(outcome.value.preserved_at)

    async def test_previous_value_is_passed_to_source(self) -> None:
        previous = make_result()
        source = StubSource(result=make_result())

        await fetch_with_fallback(source, "US", previous)

        self.assertIs(source.previous_seen[0], previous)

    async def test_empty_result_is_treated_as_failure(self) -> None:
        previous = make_result()
        source = StubSource(result=make_result(new=[], updated=[], errors=[]))

        outcome = await fetch_with_fallback(source, "US", previous)

        self.assertIsInstance(outcome, Stale)
        self.assertEqual(outcome.value.new, previous.new)
        self.assertTrue(outcome.value.errors[-1].preserved)
        self.assertIn("No listings", outcome.value.errors[-1].message)

    async def test_unexpected_exception_falls_back(self) -> None:
        source = StubSource(error=RuntimeError("parser exploded"))

        with self.assertLogs("store_scrap.refresh.fallback", level="ERROR"):
            outcome = await fetch_with_fallback(source, "US", None)

        self.assertIsInstance(outcome, Empty)
        self.assertEqual(outcome.error, "parser exploded")


if __name__ == "__main__":
    unittest.main()
