import unittest
from datetime import date, datetime

from support import ApiTestCase, add_booking, add_vehicle_type

from Models import Booking
from Services.booking_router import BookingFilters, list_bookings
from Services.query import Page, apply_date_range, apply_equals, apply_search, is_set, paginate


class TestFilterValues(unittest.TestCase):
    def test_unset_values(self) -> None:
        self.assertFalse(is_set(None))
        self.assertFalse(is_set(""))
        self.assertFalse(is_set("   "))
        self.assertFalse(is_set("all"))

    def test_set_values(self) -> None:
        self.assertTrue(is_set("pending"))
        self.assertTrue(is_set(False))
        self.assertTrue(is_set(0))

    def test_total_pages_rounds_up(self) -> None:
        self.assertEqual(Page(total=25, limit=10).total_pages, 3)
        self.assertEqual(Page(total=20, limit=10).total_pages, 2)
        self.assertEqual(Page(total=0, limit=10).total_pages, 0)


class TestQueryTranslation(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.vehicle_type_id = add_vehicle_type(self.db).id
        self.db.commit()

    def _seed(self, count: int, **overrides) -> None:
        for _ in range(count):
            add_booking(self.db, self.customer_id, self.vehicle_type_id, **overrides)
        self.db.commit()

    def test_third_page_holds_the_remainder(self) -> None:
        self._seed(25)
        page = list_bookings(self.db, BookingFilters(page=3, limit=10))
        self.assertEqual(len(page.items), 5)
        self.assertEqual(page.total, 25)
        self.assertEqual(page.total_pages, 3)

    def test_page_past_the_end_is_empty(self) -> None:
        self._seed(3)
        page = list_bookings(self.db, BookingFilters(page=5, limit=10))
        self.assertEqual(page.items, [])
        self.assertEqual(page.total, 3)

    def test_empty_filters_return_everything(self) -> None:
        self._seed(4)
        page = list_bookings(self.db, BookingFilters(search="", status="all", payment_status=None))
        self.assertEqual(page.total, 4)

    def test_equality_and_search_compose(self) -> None:
        self._seed(2, booking_status="confirmed")
        self._seed(1, booking_status="confirmed", pickup_address="Girona Station")
        self._seed(3, booking_status="pending", pickup_address="Girona Airport")

        query = self.db.query(Booking)
        query = apply_equals(query, Booking.booking_status, "confirmed")
        query = apply_search(query, [Booking.pickup_address, Booking.dropoff_address], "girona")
        self.assertEqual(query.count(), 1)

    def test_date_range_is_inclusive_of_whole_days(self) -> None:
        self._seed(1, pickup_datetime=datetime(2026, 3, 10, 23, 30))
        self._seed(1, pickup_datetime=datetime(2026, 3, 11, 0, 15))
        self._seed(1, pickup_datetime=datetime(2026, 3, 9, 8, 0))

        query = apply_date_range(self.db.query(Booking), Booking.pickup_datetime, date(2026, 3, 10), date(2026, 3, 10))
        self.assertEqual(query.count(), 1)

        query = apply_date_range(self.db.query(Booking), Booking.pickup_datetime, date_from=date(2026, 3, 10))
        self.assertEqual(query.count(), 2)

    def test_default_order_is_newest_first(self) -> None:
        self._seed(1, booking_number="OLD-1", created_at=datetime(2025, 1, 1))
        self._seed(1, booking_number="NEW-1", created_at=datetime(2026, 1, 1))
        page = paginate(self.db.query(Booking), page=1, limit=10)
        self.assertEqual([b.booking_number for b in page.items], ["NEW-1", "OLD-1"])

    def test_list_endpoint_reports_totals(self) -> None:
        self._seed(25)
        res = self.client.get("/api/admin/bookings?page=3&limit=10", headers=self.admin_headers)
        self.assertEqual(res.status_code, 200, res.text)
        body = res.json()
        self.assertEqual(len(body["items"]), 5)
        self.assertEqual(body["total"], 25)
        self.assertEqual(body["total_pages"], 3)
        self.assertEqual(body["page"], 3)


if __name__ == "__main__":
    unittest.main()
