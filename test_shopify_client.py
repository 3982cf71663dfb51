import asyncio
import json
import tempfile
import unittest
from pathlib import Path

import httpx

from shopbulk.adapters.shopify_adapter import ShopifyRemoteAPI
from shopbulk.config.settings import Settings
from shopbulk.core.exceptions import JobStartError, StagingError
from shopbulk.models.batch import Batch
from shopbulk.models.bulk_job import BulkJobStatus
from shopbulk.services.mutations import (
    INVENTORY_SET_ON_HAND,
    enable_tracking_operation,
    set_quantity_operation,
)
from shopbulk.services.shopify import (
    ShopifyClient,
    ShopifyDataError,
    ShopifyGraphQLError,
    ShopifyThrottledError,
    ShopifyTransportError,
)


SETTINGS = Settings(
    shop="test-shop.myshopify.com",
    access_token="shpat_test",
    api_version="2025-07",
    cache_file="inventory_cache.json",
    cache_max_age_seconds=3600,
    csv_file="inventory_update.csv",
    http_timeout=5,
)

THROTTLE_EXT = {
    "cost": {
        "requestedQueryCost": 10,
        "throttleStatus": {"maximumAvailable": 2000.0, "currentlyAvailable": 1990, "restoreRate": 100.0},
    }
}


def _client(handler):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ShopifyClient(SETTINGS, http_client=http), http


class TestShopifyClient(unittest.TestCase):
    def test_graphql_posts_to_admin_endpoint_with_token(self):
        async def run():
            seen = {}

            def handler(request):
                seen["url"] = str(request.url)
                seen["token"] = request.headers.get("X-Shopify-Access-Token")
                seen["body"] = json.loads(request.content)
                return httpx.Response(200, json={"data": {"shop": {"id": "1"}}, "extensions": THROTTLE_EXT})

            client, http = _client(handler)
            async with http:
                throttle = await client.get_throttle_status()

            self.assertEqual(seen["url"], "https://test-shop.myshopify.com/admin/api/2025-07/graphql.json")
            self.assertEqual(seen["token"], "shpat_test")
            self.assertIn("shop", seen["body"]["query"])
            self.assertEqual(throttle.currently_available, 1990)
            self.assertEqual(throttle.maximum_available, 2000)

        asyncio.run(run())

    def test_http_429_is_throttled(self):
        async def run():
            client, http = _client(lambda request: httpx.Response(429, json={"errors": "Throttled"}))
            async with http:
                with self.assertRaises(ShopifyThrottledError):
                    await client.graphql("{ shop { id } }")

        asyncio.run(run())

    def test_throttled_graphql_error_carries_throttle(self):
        async def run():
            body = {
                "errors": [{"message": "Throttled", "extensions": {"code": "THROTTLED"}}],
                "extensions": THROTTLE_EXT,
            }
            client, http = _client(lambda request: httpx.Response(200, json=body))
            async with http:
                with self.assertRaises(ShopifyThrottledError) as ctx:
                    await client.graphql("{ shop { id } }")
                self.assertEqual(ctx.exception.throttle.currently_available, 1990)
                probe = await client.get_throttle_status()
                self.assertEqual(probe.currently_available, 1990)

        asyncio.run(run())

    def test_other_graphql_errors_and_5xx_are_transport_failures(self):
        async def run():
            client, http = _client(
                lambda request: httpx.Response(200, json={"errors": [{"message": "Field 'x' doesn't exist"}]})
            )
            async with http:
                with self.assertRaises(ShopifyGraphQLError):
                    await client.graphql("{ x }")

            client, http = _client(lambda request: httpx.Response(502, text="Bad gateway"))
            async with http:
                with self.assertRaises(ShopifyTransportError):
                    await client.graphql("{ shop { id } }")
                self.assertIsNone(await client.get_throttle_status())

        asyncio.run(run())

    def test_network_error_is_transport_failure(self):
        async def run():
            def handler(request):
                raise httpx.ConnectError("connection refused", request=request)

            client, http = _client(handler)
            async with http:
                with self.assertRaises(ShopifyTransportError):
                    await client.graphql("{ shop { id } }")

        asyncio.run(run())

    def test_fetch_all_products_paginates(self):
        async def run():
            pages = [
                {
                    "products": {
                        "pageInfo": {"hasNextPage": True},
                        "edges": [{"cursor": "c1", "node": {"id": "gid://shopify/Product/1", "title": "Dummy Product 1"}}],
                    }
                },
                {
                    "products": {
                        "pageInfo": {"hasNextPage": False},
                        "edges": [{"cursor": "c2", "node": {"id": "gid://shopify/Product/2", "title": "Dummy Product 2"}}],
                    }
                },
            ]
            cursors = []

            def handler(request):
                cursors.append(json.loads(request.content)["variables"].get("after"))
                return httpx.Response(200, json={"data": pages[len(cursors) - 1]})

            client, http = _client(handler)
            async with http:
                products = await client.fetch_all_products()

            self.assertEqual([p["id"] for p in products], ["gid://shopify/Product/1", "gid://shopify/Product/2"])
            self.assertEqual(cursors, [None, "c1"])

        asyncio.run(run())

    def test_no_locations(self):
        async def run():
            client, http = _client(lambda request: httpx.Response(200, json={"data": {"locations": {"edges": []}}}))
            async with http:
                with self.assertRaises(ShopifyDataError):
                    await client.get_first_location_id()

        asyncio.run(run())


class TestShopifyRemoteAPI(unittest.TestCase):
    def test_execute_reports_user_errors_and_throttle(self):
        async def run():
            sent = {}

            def handler(request):
                sent.update(json.loads(request.content))
                return httpx.Response(
                    200,
                    json={
                        "data": {
                            "inventorySetOnHandQuantities": {
                                "userErrors": [{"field": ["input"], "message": "Invalid item"}]
                            }
                        },
                        "extensions": THROTTLE_EXT,
                    },
                )

            client, http = _client(handler)
            remote = ShopifyRemoteAPI(client)
            ops = tuple(
                set_quantity_operation(INVENTORY_SET_ON_HAND.name, f"gid://shopify/InventoryItem/{i}", "loc", 5)
                for i in range(3)
            )
            async with http:
                response = await remote.execute(Batch(0, ops))

            self.assertEqual(len(sent["variables"]["input"]["setQuantities"]), 3)
            self.assertEqual(sent["variables"]["input"]["reason"], "correction")
            self.assertEqual(len(response.user_errors), 1)
            self.assertEqual(response.throttle.currently_available, 1990)

        asyncio.run(run())

    def test_enable_tracking_uses_one_alias_per_item(self):
        async def run():
            sent = {}

            def handler(request):
                sent.update(json.loads(request.content))
                return httpx.Response(200, json={"data": {"t0": {"userErrors": []}, "t1": {"userErrors": []}}})

            client, http = _client(handler)
            remote = ShopifyRemoteAPI(client)
            ops = (enable_tracking_operation("gid://a"), enable_tracking_operation("gid://b"))
            async with http:
                response = await remote.execute(Batch(0, ops))

            self.assertIn("t0: inventoryItemUpdate", sent["query"])
            self.assertIn("t1: inventoryItemUpdate", sent["query"])
            self.assertEqual(sent["variables"], {"id0": "gid://a", "id1": "gid://b"})
            self.assertEqual(response.user_errors, [])

        asyncio.run(run())

    def test_staging_user_errors_become_staging_error(self):
        async def run():
            body = {"data": {"stagedUploadsCreate": {"stagedTargets": [], "userErrors": [{"message": "bad"}]}}}
            client, http = _client(lambda request: httpx.Response(200, json=body))
            async with http:
                with self.assertRaises(StagingError):
                    await ShopifyRemoteAPI(client).create_staged_upload("x.jsonl", "text/jsonl")

        asyncio.run(run())

    def test_start_job_errors_and_status(self):
        async def run():
            body = {
                "data": {
                    "bulkOperationRunMutation": {
                        "bulkOperation": None,
                        "userErrors": [{"message": "A bulk mutation operation is already running"}],
                    }
                }
            }
            client, http = _client(lambda request: httpx.Response(200, json=body))
            async with http:
                with self.assertRaises(JobStartError):
                    await ShopifyRemoteAPI(client).start_async_job("mutation { x }", "tmp/key")

            status = {
                "data": {
                    "currentBulkOperation": {
                        "id": "gid://shopify/BulkOperation/9",
                        "status": "RUNNING",
                        "objectCount": "120",
                    }
                }
            }
            client, http = _client(lambda request: httpx.Response(200, json=status))
            async with http:
                job = await ShopifyRemoteAPI(client).get_job_status()
            self.assertEqual(job.status, BulkJobStatus.RUNNING)
            self.assertEqual(job.object_count, 120)

        asyncio.run(run())

    def test_upload_sends_every_form_field_before_the_file(self):
        async def run():
            seen = {}

            def handler(request):
                seen["url"] = str(request.url)
                seen["token"] = request.headers.get("X-Shopify-Access-Token")
                seen["body"] = request.content.decode("utf-8")
                return httpx.Response(201)

            with tempfile.TemporaryDirectory() as tmp:
                path = Path(tmp) / "payload.jsonl"
                path.write_text('{"a": 1}\n{"a": 2}', encoding="utf-8")
                client, http = _client(handler)
                async with http:
                    await client.upload_staged_file(
                        "https://uploads.example.com/",
                        [("key", "tmp/payload.jsonl"), ("x-amz-meta", "one"), ("x-amz-meta", "two")],
                        path,
                    )

            body = seen["body"]
            self.assertEqual(seen["url"], "https://uploads.example.com/")
            self.assertIsNone(seen["token"])
            self.assertEqual(body.count('name="x-amz-meta"'), 2)
            self.assertIn("one", body)
            self.assertIn("two", body)
            self.assertLess(body.index('name="key"'), body.index('name="file"'))
            self.assertLess(body.index("two"), body.index('name="file"'))
            self.assertIn('{"a": 2}', body)

        asyncio.run(run())

    def test_upload_rejection_is_transport_failure(self):
        async def run():
            with tempfile.TemporaryDirectory() as tmp:
                path = Path(tmp) / "payload.jsonl"
                path.write_text("{}", encoding="utf-8")
                client, http = _client(lambda request: httpx.Response(403, text="denied"))
                async with http:
                    with self.assertRaises(ShopifyTransportError):
                        await client.upload_staged_file("https://uploads.example.com/", [("key", "k")], path)

        asyncio.run(run())


if __name__ == "__main__":
    unittest.main()
