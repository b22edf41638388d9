import unittest
from datetime import date

from production_kpi.errors import ValidationError
from production_kpi.production.filters import parse_calendar_filters, parse_date_range_filters, parse_kpi_filters


class KpiFilterParsingTest(unittest.TestCase):
    def test_defaults(self) -> None:
        filters = parse_kpi_filters({})

        self.assertIsNone(filters.date_from)
        self.assertIsNone(filters.date_to)
        self.assertEqual(filters.q, "")
        self.assertEqual(filters.page, 1)
        self.assertEqual(filters.page_size, 20)

    def test_page_size_is_clamped(self) -> None:
        self.assertEqual(parse_kpi_filters({"pageSize": "500"}).page_size, 100)
        self.assertEqual(parse_kpi_filters({"page_size": "0"}).page_size, 1)
        self.assertEqual(parse_kpi_filters({"pageSize": "abc"}).page_size, 20)
        self.assertEqual(parse_kpi_filters({"page": "-3"}).page, 1)

    def test_reversed_range_is_swapped(self) -> None:
        filters = parse_date_range_filters({"from": "2025-03-31", "to": "2025-03-01"})

        self.assertEqual(filters.date_from, date(2025, 3, 1))
        self.assertEqual(filters.date_to, date(2025, 3, 31))

    def test_timestamp_arguments_keep_the_day(self) -> None:
        filters = parse_kpi_filters({"from": "2025-03-01T10:00:00Z", "q": "  bracket "})

        self.assertEqual(filters.date_from, date(2025, 3, 1))
        self.assertEqual(filters.q, "bracket")

    def test_invalid_date_raises_validation_error(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            parse_kpi_filters({"to": "03/01/2025"})

        self.assertEqual(ctx.exception.code, "date_invalid")
        self.assertEqual(ctx.exception.http_status, 400)
        self.assertEqual(ctx.exception.payload, {"field": "to"})


class CalendarFilterParsingTest(unittest.TestCase):
    def test_month_span(self) -> None:
        filters = parse_calendar_filters({"year": "2024", "month": "2"})

        self.assertEqual(filters.date_from, date(2024, 2, 1))
        self.assertEqual(filters.date_to, date(2024, 2, 29))

    def test_year_span(self) -> None:
        filters = parse_calendar_filters({"year": "2025"})

        self.assertEqual(filters.date_from, date(2025, 1, 1))
        self.assertEqual(filters.date_to, date(2025, 12, 31))

    def test_explicit_range_wins(self) -> None:
        filters = parse_calendar_filters({"year": "2025", "from": "2025-06-01"})

        self.assertEqual(filters.date_from, date(2025, 6, 1))
        self.assertIsNone(filters.date_to)

    def test_no_arguments_means_unbounded(self) -> None:
        filters = parse_calendar_filters({})

        self.assertIsNone(filters.date_from)
        self.assertIsNone(filters.date_to)

    def test_bad_year_and_month(self) -> None:
        cases = [
            ({"year": "25"}, "year_invalid"),
            ({"month": "3"}, "year_invalid"),
            ({"year": "2025", "month": "13"}, "month_invalid"),
            ({"year": "2025", "month": "x"}, "month_invalid"),
        ]
        for args, code in cases:
            with self.subTest(args=args):
                with self.assertRaises(ValidationError) as ctx:
                    parse_calendar_filters(args)
                self.assertEqual(ctx.exception.code, code)


if __name__ == "__main__":
    unittest.main()
