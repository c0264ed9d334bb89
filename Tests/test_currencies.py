import os
import unittest
from unittest.mock import patch

from support import ApiTestCase, add_currency

import httpx

from Models import CurrencySetting
from Services import currency_router
from Services.revalidation import page_cache


class TestCurrencies(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        add_currency(self.db, "EUR", is_enabled=True, is_default=True, display_order=1, exchange_rate=1.0)
        add_currency(self.db, "USD", is_enabled=True, is_featured=True, display_order=2)
        add_currency(self.db, "GBP", is_enabled=False, display_order=0)
        self.db.commit()

    def test_list_by_display_order(self) -> None:
        res = self.client.get("/api/admin/currencies", headers=self.admin_headers)
        self.assertEqual([c["currency_code"] for c in res.json()], ["GBP", "EUR", "USD"])

    def test_default_cannot_be_disabled(self) -> None:
        res = self.client.patch("/api/admin/currencies/EUR/enabled", json={"is_enabled": False},
                                headers=self.admin_headers)
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["detail"], "Cannot disable the default currency")
        self.assertTrue(self.fetch(CurrencySetting, "EUR").is_enabled)

    def test_disabling_unfeatures(self) -> None:
        res = self.client.patch("/api/admin/currencies/usd/enabled", json={"is_enabled": False},
                                headers=self.admin_headers)
        self.assertEqual(res.status_code, 200, res.text)
        usd = self.fetch(CurrencySetting, "USD")
        self.assertFalse(usd.is_enabled)
        self.assertFalse(usd.is_featured)
        self.assertTrue(page_cache.was_revalidated("path", "/admin/settings/currencies"))
        self.assertTrue(page_cache.was_revalidated("tag", "currencies"))

    def test_feature_requires_enabled(self) -> None:
        res = self.client.patch("/api/admin/currencies/GBP/featured", json={"is_featured": True},
                                headers=self.admin_headers)
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["detail"], "Currency must be enabled before featuring")

    def test_set_default_moves_the_flag(self) -> None:
        res = self.client.post("/api/admin/currencies/USD/default", headers=self.admin_headers)
        self.assertEqual(res.status_code, 200, res.text)
        self.assertTrue(self.fetch(CurrencySetting, "USD").is_default)
        self.assertFalse(self.fetch(CurrencySetting, "EUR").is_default)
        self.db.rollback()
        self.assertEqual(self.db.query(CurrencySetting).filter(CurrencySetting.is_default == True).count(), 1)

    def test_set_default_requires_enabled(self) -> None:
        res = self.client.post("/api/admin/currencies/GBP/default", headers=self.admin_headers)
        self.assertEqual(res.status_code, 400)
        self.assertTrue(self.fetch(CurrencySetting, "EUR").is_default)

    def test_update_order(self) -> None:
        res = self.client.patch("/api/admin/currencies/USD/order", json={"display_order": 0},
                                headers=self.admin_headers)
        self.assertEqual(res.json()["display_order"], 0)

    def test_unknown_currency(self) -> None:
        res = self.client.patch("/api/admin/currencies/XYZ/order", json={"display_order": 0},
                                headers=self.admin_headers)
        self.assertEqual(res.status_code, 404)

    def test_refresh_stores_rates(self) -> None:
        upstream = httpx.Response(
            200,
            json={"success": True, "message": "Rates updated", "source": "api",
                  "rates": {"USD": 1.08, "GBP": 0.85, "JPY": 160.2}, "lastUpdated": "2026-10-19T08:00:00Z"},
            request=httpx.Request("POST", "https://project.supabase.co/functions/v1/fetch-exchange-rates"),
        )
        env = {"SUPABASE_URL": "https://project.supabase.co", "SUPABASE_ANON_KEY": "anon-key"}
        with patch.dict(os.environ, env), patch.object(currency_router.httpx, "post", return_value=upstream) as post:
            res = self.client.post("/api/admin/currencies/refresh-rates", headers=self.admin_headers)

        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(res.json()["updated"], 2)
        self.assertEqual(post.call_args.args[0], "https://project.supabase.co/functions/v1/fetch-exchange-rates")
        self.assertEqual(post.call_args.kwargs["headers"]["Authorization"], "Bearer anon-key")
        self.assertEqual(self.fetch(CurrencySetting, "USD").exchange_rate, 1.08)
        self.assertIsNotNone(self.fetch(CurrencySetting, "GBP").rates_updated_at)
        self.assertTrue(page_cache.was_revalidated("tag", "exchange-rates"))

    def test_refresh_upstream_failure(self) -> None:
        env = {"SUPABASE_URL": "https://project.supabase.co", "SUPABASE_ANON_KEY": "anon-key"}
        with patch.dict(os.environ, env), patch.object(
            currency_router.httpx, "post", side_effect=httpx.ConnectError("down")
        ):
            res = self.client.post("/api/admin/currencies/refresh-rates", headers=self.admin_headers)
        self.assertEqual(res.status_code, 502)
        self.assertIsNone(self.fetch(CurrencySetting, "USD").exchange_rate)

    def _refresh_with_body(self, body):
        upstream = httpx.Response(
            200, json=body,
            request=httpx.Request("POST", "https://project.supabase.co/functions/v1/fetch-exchange-rates"),
        )
        env = {"SUPABASE_URL": "https://project.supabase.co", "SUPABASE_ANON_KEY": "anon-key"}
        with patch.dict(os.environ, env), patch.object(currency_router.httpx, "post", return_value=upstream):
            return self.client.post("/api/admin/currencies/refresh-rates", headers=self.admin_headers)

    def test_refresh_rejects_malformed_rates(self) -> None:
        for body in (
            {"success": True, "rates": {"USD": "n/a", "GBP": 0.85}},
            {"success": True, "rates": ["USD", 1.08]},
            ["not", "an", "object"],
        ):
            res = self._refresh_with_body(body)
            self.assertEqual(res.status_code, 502, res.text)
            self.assertEqual(res.json()["detail"], "Failed to refresh rates")

        self.assertIsNone(self.fetch(CurrencySetting, "USD").exchange_rate)
        self.assertIsNone(self.fetch(CurrencySetting, "GBP").exchange_rate)

    def test_refresh_reported_failure(self) -> None:
        res = self._refresh_with_body({"success": False, "message": "Rate provider unavailable"})
        self.assertEqual(res.status_code, 502)
        self.assertEqual(res.json()["detail"], "Rate provider unavailable")

    def test_refresh_without_configuration(self) -> None:
        res = self.client.post("/api/admin/currencies/refresh-rates", headers=self.admin_headers)
        self.assertEqual(res.status_code, 500)
        self.assertEqual(res.json()["detail"], "Supabase configuration missing")


if __name__ == "__main__":
    unittest.main()
