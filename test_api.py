import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

import main
from fake_remote import FakeRemote, throttle
from shopbulk.config.settings import Settings
from shopbulk.core.exceptions import AllBatchesFailedError, FatalStuckError, StagingError
from shopbulk.models.batch import RunResult
from shopbulk.utils.cache import SnapshotCache


def _product(n):
    return {
        "id": f"gid://shopify/Product/{n}",
        "title": f"Dummy Product {n}",
        "variants": {
            "edges": [
                {"node": {"id": f"gid://shopify/ProductVariant/{n}", "inventoryItem": {"id": f"gid://shopify/InventoryItem/{n}"}}}
            ]
        },
    }


class TestApi(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.cache = SnapshotCache(self.tmp / "inventory_cache.json")
        self.remote = FakeRemote(call_throttle=throttle(19000))
        self.shopify = MagicMock()
        self.shopify.fetch_all_products = AsyncMock(return_value=[_product(1), _product(2)])
        self.shopify.get_first_location_id = AsyncMock(return_value="gid://shopify/Location/1")
        self.settings = Settings(
            shop="test-shop.myshopify.com",
            access_token="shpat_test",
            api_version="2025-07",
            cache_file=str(self.tmp / "inventory_cache.json"),
            cache_max_age_seconds=3600,
            csv_file=str(self.tmp / "inventory_update.csv"),
            http_timeout=5,
        )

        main.app.dependency_overrides[main.get_cache] = lambda: self.cache
        main.app.dependency_overrides[main.get_client] = lambda: self.shopify
        main.app.dependency_overrides[main.get_remote] = lambda: self.remote
        main.app.dependency_overrides[main.get_app_settings] = lambda: self.settings
        self.client = TestClient(main.app)

    def tearDown(self):
        main.app.dependency_overrides.clear()
        self._tmp.cleanup()

    def test_health(self):
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "ok")
        self.assertIn("inventory_set_on_hand", resp.json()["mutationKinds"])
        self.assertIn("X-Request-ID", resp.headers)

    def test_missing_cache_is_400(self):
        resp = self.client.post("/inventory/enable-tracking")
        self.assertEqual(resp.status_code, 400)
        body = resp.json()
        self.assertFalse(body["success"])
        self.assertIn("cache not found", body["error"])

    def test_refresh_then_update_quantities(self):
        resp = self.client.post("/inventory/refresh-cache")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["totalProducts"], 2)

        resp = self.client.post("/inventory/update-quantities")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["updated"], 2)
        self.assertEqual(body["locationId"], "gid://shopify/Location/1")

    def test_full_update_without_cache_fetches(self):
        resp = self.client.post("/inventory/update", json={"use_cache": False})
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["totalProducts"], 2)
        self.assertEqual(body["enableTracking"]["updated"], 2)
        self.assertEqual(body["updateQuantities"]["updated"], 2)

    def test_csv_update(self):
        self.cache.save([_product(1)])
        (self.tmp / "inventory_update.csv").write_text("product_number,quantity\n1,10\n42,3\n", encoding="utf-8")

        resp = self.client.post("/inventory/update-from-csv")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["productsFound"], 1)
        self.assertEqual(body["productsNotFound"], 1)
        self.assertEqual(body["updated"], 1)

    def test_csv_missing_file_is_400(self):
        self.cache.save([_product(1)])
        resp = self.client.post("/inventory/update-from-csv")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "CSV file not found: inventory_update.csv")

    def test_csv_path_in_body_is_ignored(self):
        self.cache.save([_product(1)])
        (self.tmp / "inventory_update.csv").write_text("product_number,quantity\n1,10\n", encoding="utf-8")
        secret_dir = self.tmp / "secret_dir"
        secret_dir.mkdir()
        (secret_dir / "creds.csv").write_text("token,quantity\nSECRET_TOKEN_abc123,5\n", encoding="utf-8")

        resp = self.client.post(
            "/inventory/update-from-csv", json={"csv_file": str(secret_dir / "creds.csv")}
        )
        self.assertEqual(resp.status_code, 200)
        self.assertNotIn("SECRET_TOKEN_abc123", resp.text)
        self.assertEqual(resp.json()["productsFound"], 1)

    def test_csv_that_is_not_utf8_is_400(self):
        self.cache.save([_product(1)])
        (self.tmp / "inventory_update.csv").write_bytes(b"product_number,quantity\n\xff\xfe1,10\n")
        resp = self.client.post("/inventory/update-from-csv")
        self.assertEqual(resp.status_code, 400)
        self.assertIn("not valid UTF-8", resp.json()["error"])

    def test_malformed_price_is_rejected(self):
        self.cache.save([_product(1)])
        resp = self.client.post("/prices/update-bulk", json={"price": "12,00abc"})
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(self.remote.uploads, [])

    def test_create_products_and_status(self):
        resp = self.client.post("/products/create", json={"count": 3})
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["bulkOperation"]["status"], "CREATED")
        self.assertEqual(len(self.remote.uploads[0][4].splitlines()), 3)

        resp = self.client.get("/products/bulk-operation-status")
        self.assertEqual(resp.json()["bulkOperation"]["id"], "gid://shopify/BulkOperation/1")

    def test_create_more_products(self):
        self.cache.save([_product(7)])
        resp = self.client.post("/products/create-more", json={"count": 2})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual((resp.json()["start"], resp.json()["end"]), (8, 9))

    def test_price_endpoints(self):
        self.cache.save([_product(1), _product(2)])

        resp = self.client.post("/prices/update", json={"price": "12.00"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["updated"], 2)
        self.assertEqual(resp.json()["price"], "12.00")

        resp = self.client.post("/prices/update-bulk")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["totalLines"], 2)
        self.assertEqual(resp.json()["price"], "100.00")

    def test_bulk_setup_failure_is_502(self):
        self.cache.save([_product(1)])
        self.remote.staging_error = StagingError("Staged upload error")
        resp = self.client.post("/prices/update-bulk")
        self.assertEqual(resp.status_code, 502)
        self.assertEqual(resp.json()["stage"], "StagingError")

    def test_fatal_stuck_is_503(self):
        self.cache.save([_product(1)])
        with patch("main.inventory.enable_tracking", AsyncMock(side_effect=FatalStuckError("stuck", cycles=120))):
            resp = self.client.post("/inventory/enable-tracking")
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.json()["cycles"], 120)

    def test_all_batches_failed_is_502(self):
        self.cache.save([_product(1)])
        run = RunResult(
            results=[],
            elapsed_seconds=0.1,
            attempted_count=1,
            updated_count=0,
            failed_count=1,
            batch_count=1,
            round_count=1,
            retry_count=0,
        )
        with patch("main.prices.update_prices", AsyncMock(side_effect=AllBatchesFailedError("all failed", result=run))):
            resp = self.client.post("/prices/update")
        self.assertEqual(resp.status_code, 502)
        self.assertEqual(resp.json()["result"]["failed"], 1)

    def test_unexpected_error_is_500(self):
        client = TestClient(main.app, raise_server_exceptions=False)
        self.cache.save([_product(1)])
        with patch("main.prices.update_prices", AsyncMock(side_effect=RuntimeError("boom"))):
            resp = client.post("/prices/update")
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"success": False, "error": "Internal server error"})


if __name__ == "__main__":
    unittest.main()
