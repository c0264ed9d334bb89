import os
import unittest
from unittest.mock import patch

from support import PNG_DATA_URL

import httpx
from fastapi import HTTPException

from Services import storage


class TestDecodeDataUrl(unittest.TestCase):
    def test_data_url(self) -> None:
        data, content_type = storage.decode_data_url(PNG_DATA_URL)
        self.assertEqual(content_type, "image/png")
        self.assertTrue(data.startswith(b"\x89PNG"))

    def test_bare_base64_defaults_to_jpeg(self) -> None:
        _, content_type = storage.decode_data_url(PNG_DATA_URL.split(",", 1)[1])
        self.assertEqual(content_type, "image/jpeg")

    def test_rejects_garbage(self) -> None:
        with self.assertRaises(ValueError):
            storage.decode_data_url("data:image/png;base64,not base64 at all!")
        with self.assertRaises(ValueError):
            storage.decode_data_url("")


class TestUploadImage(unittest.TestCase):
    def test_local_upload_writes_file(self) -> None:
        url = storage.upload_image("blog/categories", "travel-tips", PNG_DATA_URL)
        self.assertTrue(url.startswith("http://testserver/uploads/blog/categories/travel-tips-"))
        self.assertTrue(url.endswith(".png"))
        key = url.split("/uploads/", 1)[1]
        self.assertTrue(os.path.exists(os.path.join(os.environ["STORAGE_DIR"], key)))

    def test_non_image_payload_is_rejected(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            storage.upload_image("x", "doc", "data:text/plain;base64,aGVsbG8=")
        self.assertEqual(ctx.exception.status_code, 400)

    def test_oversized_payload_is_rejected(self) -> None:
        with patch.object(storage, "MAX_IMAGE_BYTES", 10):
            with self.assertRaises(HTTPException) as ctx:
                storage.upload_image("x", "big", PNG_DATA_URL)
        self.assertEqual(ctx.exception.status_code, 400)

    def test_storage_failure_is_bad_gateway(self) -> None:
        def failing_upload(path, data, content_type):
            raise httpx.ConnectError("connection refused")

        with patch.object(storage, "upload", failing_upload):
            with self.assertRaises(HTTPException) as ctx:
                storage.upload_image("x", "img", PNG_DATA_URL)
        self.assertEqual(ctx.exception.status_code, 502)
        self.assertEqual(ctx.exception.detail, "Failed to upload image")

    def test_supabase_upload_when_configured(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"Key": "ok"})

        transport = httpx.MockTransport(handler)
        real_client = httpx.Client

        env = {"SUPABASE_URL": "https://project.supabase.co", "SUPABASE_SERVICE_ROLE_KEY": "service-key"}
        with patch.dict(os.environ, env), patch.object(
            storage.httpx, "Client", lambda **kwargs: real_client(transport=transport, **kwargs)
        ):
            url = storage.upload_image("vehicles/v1", "primary", PNG_DATA_URL)

        self.assertEqual(len(calls), 1)
        self.assertEqual(calls[0].headers["Authorization"], "Bearer service-key")
        self.assertIn("/storage/v1/object/public-images/vehicles/v1/primary-", str(calls[0].url))
        self.assertTrue(url.startswith("https://project.supabase.co/storage/v1/object/public/public-images/vehicles/v1/"))


if __name__ == "__main__":
    unittest.main()
