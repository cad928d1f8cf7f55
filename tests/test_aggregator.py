import unittest

from store_scrap.core.models import Country, ErrorRecord, StoreResult
from store_scrap.refresh.aggregator import build_summary, to_summary_entry


class AggregatorTests(unittest.TestCase):
    def test_projects_counts_and_nulls_missing_entries(self) -> None:
        apple_us = StoreResult(
            country="US",
            store="apple",
            updated_at="2026-01-01T00:00:00Z",
            new=[{"id": "1"}, {"id": "2"}],
            updated=[{"id": "3"}],
            errors=[ErrorRecord(message="x")],
        )
        results = {("apple", "US"): apple_us}

        summary = build_summary(
            [Country("US", "United States"), Country("CA")],
            lambda store, code: results.get((store, code)),
            meta={"countries": 2},
            generated_at="2026-01-02T00:00:00Z",
        )

        self.assertEqual(summary["generatedAt"], "2026-01-02T00:00:00Z")
        self.assertEqual(summary["meta"], {"countries": 2})
        self.assertEqual(
            summary["countries"][0],
            {
                "code": "US",
                "name": "United States",
                "apple": {
                    "updatedAt": "2026-01-01T00:00:00Z",
                    "newCount": 2,
                    "updatedCount": 1,
                    "errorCount": 1,
                    "preservedCount": 0,
                },
                "google": None,
            },
        )
        self.assertEqual(summary["countries"][1], {"code": "CA", "name": None, "apple": None, "google": None})

    def test_entry_falls_back_to_preserved_timestamp(self) -> None:
        result = StoreResult(country="US", store="google", updated_at="", preserved_at="2026-01-03T00:00:00Z")

        self.assertEqual(to_summary_entry(result)["updatedAt"], "2026-01-03T00:00:00Z")

    def test_missing_result_projects_to_none(self) -> None:
        self.assertIsNone(to_summary_entry(None))


if __name__ == "__main__":
    unittest.main()
