import csv
import io
import unittest
from datetime import datetime, timedelta

from support import ApiTestCase, add_booking, add_vehicle_type

from Models import Booking, BookingAssignment
from Services.revalidation import page_cache


class TestBookings(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.vehicle_type_id = add_vehicle_type(self.db).id
        self.db.commit()

    def _booking(self, **overrides) -> str:
        booking = add_booking(self.db, self.customer_id, self.vehicle_type_id, **overrides)
        self.db.commit()
        return booking.id

    def test_list_embeds_customer_and_vehicle_type(self) -> None:
        self._booking()
        res = self.client.get("/api/admin/bookings", headers=self.admin_headers)
        self.assertEqual(res.status_code, 200, res.text)
        item = res.json()["items"][0]
        self.assertEqual(item["customer"]["email"], "customer@example.com")
        self.assertEqual(item["vehicle_type"]["name"], "Standard Sedan")

    def test_status_and_search_filters(self) -> None:
        self._booking(booking_status="confirmed", booking_number="BK-MATCH")
        self._booking(booking_status="pending")
        self._booking(booking_status="confirmed", dropoff_address="Sitges Beach")

        res = self.client.get("/api/admin/bookings?status=confirmed&search=match", headers=self.admin_headers)
        numbers = [item["booking_number"] for item in res.json()["items"]]
        self.assertEqual(numbers, ["BK-MATCH"])

        res = self.client.get("/api/admin/bookings?status=all", headers=self.admin_headers)
        self.assertEqual(res.json()["total"], 3)

    def test_invalid_status_filter_is_rejected(self) -> None:
        res = self.client.get("/api/admin/bookings?status=teleported", headers=self.admin_headers)
        self.assertEqual(res.status_code, 422)

    def test_stats_exclude_test_bookings(self) -> None:
        self._booking(booking_status="confirmed", payment_status="completed", total_price=100.0,
                      pickup_datetime=datetime.utcnow() + timedelta(days=1))
        self._booking(booking_status="completed", payment_status="completed", total_price=50.0)
        self._booking(booking_status="cancelled")
        self._booking(booking_number="TEST-0001", booking_status="completed",
                      payment_status="completed", total_price=999.0)

        res = self.client.get("/api/admin/bookings/stats", headers=self.admin_headers)
        self.assertEqual(res.status_code, 200, res.text)
        stats = res.json()
        self.assertEqual(stats["total"], 3)
        self.assertEqual(stats["today"], 3)
        self.assertEqual(stats["upcoming"], 1)
        self.assertEqual(stats["completed"], 1)
        self.assertEqual(stats["cancelled"], 1)
        self.assertEqual(stats["revenue"], 150.0)

    def test_export_quotes_every_cell(self) -> None:
        self._booking(booking_number="BK-CSV", pickup_address='Terminal "1", Gate 4')
        res = self.client.get("/api/admin/bookings/export", headers=self.admin_headers)
        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.headers["content-type"].startswith("text/csv"))
        self.assertIn("attachment;", res.headers["content-disposition"])

        lines = res.text.strip().split("\n")
        self.assertEqual(len(lines), 2)
        self.assertTrue(lines[0].startswith('"Booking Number","Customer Name"'))
        rows = list(csv.reader(io.StringIO(res.text)))
        self.assertEqual(rows[1][0], "BK-CSV")
        self.assertEqual(rows[1][6], 'Terminal "1", Gate 4')
        self.assertTrue(lines[1].startswith('"BK-CSV","'))
        self.assertTrue(lines[1].endswith('"'))

    def test_cancel_records_reason_and_time(self) -> None:
        booking_id = self._booking(booking_status="confirmed")
        res = self.client.patch(
            f"/api/admin/bookings/{booking_id}/status",
            json={"status": "cancelled", "cancellation_reason": "Flight cancelled"},
            headers=self.admin_headers,
        )
        self.assertEqual(res.status_code, 200, res.text)

        booking = self.fetch(Booking, booking_id)
        self.assertEqual(booking.booking_status, "cancelled")
        self.assertEqual(booking.cancellation_reason, "Flight cancelled")
        self.assertIsNotNone(booking.cancelled_at)
        self.assertTrue(page_cache.was_revalidated("path", "/admin/bookings"))
        self.assertTrue(page_cache.was_revalidated("path", f"/admin/bookings/{booking_id}"))

    def test_unknown_status_value_is_rejected(self) -> None:
        booking_id = self._booking()
        res = self.client.patch(
            f"/api/admin/bookings/{booking_id}/status",
            json={"status": "lost"},
            headers=self.admin_headers,
        )
        self.assertEqual(res.status_code, 422)
        self.assertEqual(self.fetch(Booking, booking_id).booking_status, "pending")

    def test_missing_booking(self) -> None:
        res = self.client.get("/api/admin/bookings/nope", headers=self.admin_headers)
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["detail"], "Booking not found")

    def test_payment_status(self) -> None:
        booking_id = self._booking()
        res = self.client.patch(
            f"/api/admin/bookings/{booking_id}/payment",
            json={"status": "completed"},
            headers=self.admin_headers,
        )
        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(res.json()["payment_status"], "completed")
        self.assertIsNotNone(res.json()["paid_at"])

        res = self.client.patch(
            f"/api/admin/bookings/{booking_id}/payment",
            json={"status": "failed", "payment_error": "Card declined"},
            headers=self.admin_headers,
        )
        self.assertEqual(res.json()["payment_error"], "Card declined")

    def test_bulk_cancel(self) -> None:
        ids = [self._booking() for _ in range(3)]
        untouched = self._booking()

        res = self.client.post(
            "/api/admin/bookings/bulk-status",
            json={"ids": ids, "status": "cancelled"},
            headers=self.admin_headers,
        )
        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(res.json()["count"], 3)

        for booking_id in ids:
            booking = self.fetch(Booking, booking_id)
            self.assertEqual(booking.booking_status, "cancelled")
            self.assertEqual(booking.cancellation_reason, "Bulk cancellation by admin")
        self.assertEqual(self.fetch(Booking, untouched).booking_status, "pending")

    def test_bulk_with_no_ids_is_a_no_op(self) -> None:
        res = self.client.post(
            "/api/admin/bookings/bulk-status",
            json={"ids": [], "status": "confirmed"},
            headers=self.admin_headers,
        )
        self.assertEqual(res.json()["count"], 0)

    def test_assign_then_complete(self) -> None:
        booking_id = self._booking(booking_status="confirmed")

        res = self.client.get("/api/admin/bookings/vendors", headers=self.admin_headers)
        self.assertEqual({v["business_name"] for v in res.json()}, {"Costa Transfers", "Other Transfers"})

        res = self.client.post(
            f"/api/admin/bookings/{booking_id}/assign",
            json={"vendor_id": self.vendor_id, "notes": "Meet at arrivals"},
            headers=self.admin_headers,
        )
        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(res.json()["assignment"]["vendor"]["business_name"], "Costa Transfers")

        # Reassigning replaces the single assignment row
        res = self.client.post(
            f"/api/admin/bookings/{booking_id}/assign",
            json={"vendor_id": self.other_vendor_id},
            headers=self.admin_headers,
        )
        self.assertEqual(res.json()["assignment"]["vendor_id"], self.other_vendor_id)
        self.assertEqual(self.count(BookingAssignment), 1)

        res = self.client.patch(
            f"/api/admin/bookings/{booking_id}/status",
            json={"status": "completed"},
            headers=self.admin_headers,
        )
        self.assertEqual(res.json()["assignment"]["status"], "completed")
        self.assertIsNotNone(res.json()["assignment"]["completed_at"])

    def test_assign_requires_approved_vendor(self) -> None:
        booking_id = self._booking()
        res = self.client.post(
            f"/api/admin/bookings/{booking_id}/assign",
            json={"vendor_id": "missing"},
            headers=self.admin_headers,
        )
        self.assertEqual(res.status_code, 400)
        self.assertEqual(self.count(BookingAssignment), 0)


if __name__ == "__main__":
    unittest.main()
