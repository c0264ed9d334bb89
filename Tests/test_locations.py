import unittest

from support import ApiTestCase, add_location

from Models import Location
from Services.revalidation import page_cache


class TestLocations(ApiTestCase):
    def test_create(self) -> None:
        res = self.client.post(
            "/api/admin/locations",
            json={"name": "Reus Airport", "city": "Reus", "country_code": "es", "type": "airport",
                  "latitude": 41.147, "longitude": 1.167},
            headers=self.admin_headers,
        )
        self.assertEqual(res.status_code, 201, res.text)
        body = res.json()
        self.assertEqual(body["country_code"], "ES")
        self.assertTrue(body["is_active"])
        self.assertTrue(page_cache.was_revalidated("path", "/admin/locations"))

    def test_invalid_coordinates(self) -> None:
        res = self.client.post("/api/admin/locations", json={"name": "Nowhere", "latitude": 120},
                               headers=self.admin_headers)
        self.assertEqual(res.status_code, 422)
        self.assertEqual(self.count(Location), 0)

    def test_list_filters(self) -> None:
        add_location(self.db, "Barcelona Airport", "Barcelona", type="airport")
        add_location(self.db, "Sants Station", "Barcelona", type="station")
        add_location(self.db, "Old Port", "Tarragona", type="port", is_active=False)
        self.db.commit()

        def names(query: str) -> list:
            res = self.client.get(f"/api/admin/locations?{query}", headers=self.admin_headers)
            self.assertEqual(res.status_code, 200, res.text)
            return [item["name"] for item in res.json()["items"]]

        self.assertEqual(names(""), ["Barcelona Airport", "Old Port", "Sants Station"])
        self.assertEqual(names("search=barcelona"), ["Barcelona Airport", "Sants Station"])
        self.assertEqual(names("type=airport"), ["Barcelona Airport"])
        self.assertEqual(names("is_active=false"), ["Old Port"])

    def test_update_keeps_unsent_fields(self) -> None:
        location_id = add_location(self.db, "Sitges", "Sitges", address="Passeig Maritim").id
        self.db.commit()

        res = self.client.put(f"/api/admin/locations/{location_id}", json={"name": "Sitges Centre"},
                              headers=self.admin_headers)
        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(res.json()["name"], "Sitges Centre")
        self.assertEqual(res.json()["address"], "Passeig Maritim")

    def test_delete_is_soft(self) -> None:
        location_id = add_location(self.db, "Sitges").id
        self.db.commit()

        res = self.client.delete(f"/api/admin/locations/{location_id}", headers=self.admin_headers)
        self.assertEqual(res.status_code, 204)
        location = self.fetch(Location, location_id)
        self.assertIsNotNone(location)
        self.assertFalse(location.is_active)

    def test_missing_location(self) -> None:
        res = self.client.get("/api/admin/locations/missing", headers=self.admin_headers)
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["detail"], "Location not found")


if __name__ == "__main__":
    unittest.main()
