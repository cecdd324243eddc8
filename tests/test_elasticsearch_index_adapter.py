"""
Tests for ElasticsearchIndexAdapter behavior.

Each test verifies the requests sent to Elasticsearch and how upstream
responses and errors are mapped into SearchIndexError:
- HTTP error status codes keep their status for diagnostics.
- Bulk responses reporting item errors are treated as failures (502).
- Network timeouts map to status 504.
"""

import asyncio
import json

import aiohttp
import pytest
from aioresponses import aioresponses
from yarl import URL

from storeindex.adapters.elasticsearch_index_adapter import ElasticsearchIndexAdapter
from storeindex.core.exceptions import SearchIndexError
from storeindex.core.models.catalog import SearchDocument

BASE = "http://es.test:9200"
INDEX = "variants"


def document(variant_id="v1"):
    return SearchDocument(
        id=SearchDocument.make_id("default", "en", variant_id),
        channel_id="default",
        language_code="en",
        product_id="p1",
        variant_id=variant_id,
        product_name="Shirt",
        variant_name="Shirt M",
        sku="SH-M",
        price=1000,
        price_with_tax=1200,
        enabled=True,
    )


def sent_requests(m, method, url):
    return m.requests.get((method, URL(url)), [])


@pytest.mark.asyncio
async def test_upsert_sends_ndjson_bulk():
    with aioresponses() as m:
        m.post(f"{BASE}/_bulk", payload={"errors": False, "items": []})

        async with ElasticsearchIndexAdapter(BASE, INDEX) as adapter:
            await adapter.upsert([document("v1"), document("v2")])

        call = sent_requests(m, "POST", f"{BASE}/_bulk")[0]
        lines = call.kwargs["data"].strip().split("\n")
        assert len(lines) == 4
        assert json.loads(lines[0]) == {"index": {"_index": INDEX, "_id": "default_en_v1"}}
        assert json.loads(lines[1])["variant_id"] == "v1"
        assert call.kwargs["headers"]["Content-Type"] == "application/x-ndjson"


@pytest.mark.asyncio
async def test_upsert_of_nothing_sends_nothing():
    with aioresponses() as m:
        async with ElasticsearchIndexAdapter(BASE, INDEX) as adapter:
            await adapter.upsert([])
        assert not m.requests


@pytest.mark.asyncio
async def test_bulk_item_errors_raise():
    with aioresponses() as m:
        m.post(
            f"{BASE}/_bulk",
            payload={"errors": True, "items": [{"index": {"_id": "x", "error": {"type": "mapper_parsing_exception"}}}]},
        )

        async with ElasticsearchIndexAdapter(BASE, INDEX) as adapter:
            with pytest.raises(SearchIndexError) as excinfo:
                await adapter.upsert([document()])
        assert excinfo.value.status == 502
        assert "mapper_parsing_exception" in excinfo.value.diagnostic


@pytest.mark.asyncio
async def test_delete_variants_scoped_to_channel():
    url = f"{BASE}/{INDEX}/_delete_by_query"
    with aioresponses() as m:
        m.post(url, payload={"deleted": 1})

        async with ElasticsearchIndexAdapter(BASE, INDEX) as adapter:
            await adapter.delete_variants(["v1"], channel_id="default")

        body = sent_requests(m, "POST", url)[0].kwargs["json"]
        assert body == {
            "query": {"bool": {"filter": [{"terms": {"variant_id": ["v1"]}}, {"term": {"channel_id": "default"}}]}}
        }


@pytest.mark.asyncio
async def test_replace_channel_deletes_only_that_channel_and_language():
    delete_url = f"{BASE}/{INDEX}/_delete_by_query"
    with aioresponses() as m:
        m.post(delete_url, payload={"deleted": 3})
        m.post(f"{BASE}/_bulk", payload={"errors": False, "items": []})

        async with ElasticsearchIndexAdapter(BASE, INDEX) as adapter:
            await adapter.replace_channel("default", "en", [document("v1")])

        body = sent_requests(m, "POST", delete_url)[0].kwargs["json"]
        assert body == {
            "query": {
                "bool": {"filter": [{"term": {"channel_id": "default"}}, {"term": {"language_code": "en"}}]}
            }
        }
        assert len(sent_requests(m, "POST", f"{BASE}/_bulk")) == 1


@pytest.mark.asyncio
async def test_http_error_keeps_status():
    with aioresponses() as m:
        m.get(f"{BASE}/{INDEX}/_count", status=503, body="unavailable")

        async with ElasticsearchIndexAdapter(BASE, INDEX) as adapter:
            with pytest.raises(SearchIndexError) as excinfo:
                await adapter.count()
        assert excinfo.value.status == 503


@pytest.mark.asyncio
async def test_timeout_maps_to_504():
    with aioresponses() as m:
        m.get(f"{BASE}/{INDEX}/_count", exception=asyncio.TimeoutError())

        async with ElasticsearchIndexAdapter(BASE, INDEX) as adapter:
            with pytest.raises(SearchIndexError) as excinfo:
                await adapter.count()
        assert excinfo.value.status == 504


@pytest.mark.asyncio
async def test_count():
    with aioresponses() as m:
        m.get(f"{BASE}/{INDEX}/_count", payload={"count": 42})

        async with ElasticsearchIndexAdapter(BASE, INDEX) as adapter:
            assert await adapter.count() == 42


@pytest.mark.asyncio
async def test_create_index_only_when_missing():
    with aioresponses() as m:
        m.head(f"{BASE}/{INDEX}", status=404)
        m.put(f"{BASE}/{INDEX}", payload={"acknowledged": True})
        m.head(f"{BASE}/{INDEX}", status=200)

        async with ElasticsearchIndexAdapter(BASE, INDEX) as adapter:
            assert await adapter.create_index_if_not_exists() is True
            assert await adapter.create_index_if_not_exists() is False

        mappings = sent_requests(m, "PUT", f"{BASE}/{INDEX}")[0].kwargs["json"]["mappings"]
        assert mappings["properties"]["collection_ids"] == {"type": "keyword"}


@pytest.mark.asyncio
async def test_check_connection_reports_unreachable_cluster():
    with aioresponses() as m:
        m.get(f"{BASE}/", exception=aiohttp.ClientConnectionError("refused"))

        async with ElasticsearchIndexAdapter(BASE, INDEX) as adapter:
            assert await adapter.check_connection() is False


@pytest.mark.asyncio
async def test_requires_context_manager():
    adapter = ElasticsearchIndexAdapter(BASE, INDEX)
    with pytest.raises(RuntimeError):
        await adapter.count()
