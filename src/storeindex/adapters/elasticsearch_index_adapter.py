# storeindex/adapters/elasticsearch_index_adapter.py
import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from storeindex.core.exceptions import SearchIndexError
from storeindex.core.interfaces.search_index import SearchIndexPort
from storeindex.core.models.catalog import SearchDocument
from storeindex.core.settings import logger

INDEX_MAPPINGS: Dict[str, Any] = {
    "properties": {
        "channel_id": {"type": "keyword"},
        "language_code": {"type": "keyword"},
        "product_id": {"type": "keyword"},
        "variant_id": {"type": "keyword"},
        "product_name": {"type": "text"},
        "variant_name": {"type": "text"},
        "sku": {"type": "keyword"},
        "price": {"type": "long"},
        "price_with_tax": {"type": "long"},
        "enabled": {"type": "boolean"},
        "facet_value_ids": {"type": "keyword"},
        "collection_ids": {"type": "keyword"},
    }
}


class ElasticsearchIndexAdapter(SearchIndexPort):
    """SearchIndexPort backed by the Elasticsearch REST API.

    Uses a single aiohttp session opened by the async context manager. Every
    transport or HTTP failure is translated into SearchIndexError so the
    queue's retry policy can deal with it.
    """

    def __init__(self, base_url: str, index: str, timeout: float = 10.0):
        self._base_url = str(base_url).rstrip("/")
        self._index = index.lower()
        self._session: Optional[aiohttp.ClientSession] = None
        self._client_timeout = aiohttp.ClientTimeout(total=timeout)

    async def __aenter__(self):
        """Async context manager entry"""
        self._session = aiohttp.ClientSession(timeout=self._client_timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()
        return False

    async def close(self) -> None:
        """Close the session"""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    @property
    def index(self) -> str:
        return self._index

    async def check_connection(self) -> bool:
        try:
            await self._request("GET", "/")
        except SearchIndexError as exc:
            logger.warning(f"[es] cluster not reachable url={self._base_url} error={exc.message}")
            return False
        return True

    async def create_index_if_not_exists(self) -> bool:
        """Create the index with its mappings. Returns True when it was created."""
        if await self._index_exists():
            return False
        await self._request("PUT", f"/{self._index}", json_body={"mappings": INDEX_MAPPINGS})
        logger.info(f"[es] created index={self._index}")
        return True

    async def upsert(self, documents: Sequence[SearchDocument]) -> None:
        if not documents:
            return
        lines: List[str] = []
        for doc in documents:
            lines.append(json.dumps({"index": {"_index": self._index, "_id": doc.id}}))
            lines.append(doc.model_dump_json(exclude={"id"}))
        body = "\n".join(lines) + "\n"
        result = await self._request(
            "POST",
            "/_bulk",
            data=body,
            headers={"Content-Type": "application/x-ndjson"},
        )
        if result.get("errors"):
            failed = [
                item.get("index", {})
                for item in result.get("items", [])
                if item.get("index", {}).get("error")
            ]
            raise SearchIndexError(
                f"Bulk indexing failed for {len(failed)} of {len(documents)} documents",
                status=502,
                diagnostic=json.dumps([f.get("error") for f in failed[:5]], default=str),
            )

    async def delete_variants(self, variant_ids: Sequence[str], channel_id: Optional[str] = None) -> None:
        if variant_ids:
            await self._delete_by_query(self._terms_query("variant_id", variant_ids, channel_id))

    async def delete_products(self, product_ids: Sequence[str], channel_id: Optional[str] = None) -> None:
        if product_ids:
            await self._delete_by_query(self._terms_query("product_id", product_ids, channel_id))

    async def replace_channel(
        self, channel_id: str, language_code: str, documents: Sequence[SearchDocument]
    ) -> None:
        await self._delete_by_query(
            {
                "bool": {
                    "filter": [
                        {"term": {"channel_id": channel_id}},
                        {"term": {"language_code": language_code}},
                    ]
                }
            }
        )
        await self.upsert(documents)

    async def count(self) -> int:
        result = await self._request("GET", f"/{self._index}/_count")
        return int(result.get("count", 0))

    @staticmethod
    def _terms_query(field: str, ids: Sequence[str], channel_id: Optional[str]) -> Dict[str, Any]:
        filters: List[Dict[str, Any]] = [{"terms": {field: list(ids)}}]
        if channel_id is not None:
            filters.append({"term": {"channel_id": channel_id}})
        return {"bool": {"filter": filters}}

    async def _delete_by_query(self, query: Dict[str, Any]) -> None:
        result = await self._request("POST", f"/{self._index}/_delete_by_query", json_body={"query": query})
        logger.debug(f"[es] delete_by_query index={self._index} deleted={result.get('deleted')}")

    async def _index_exists(self) -> bool:
        if self._session is None:
            raise RuntimeError("Elasticsearch adapter not initialized. Use 'async with' context manager.")
        url = f"{self._base_url}/{self._index}"
        try:
            async with self._session.head(url) as response:
                if response.status == 404:
                    return False
                response.raise_for_status()
                return True
        except aiohttp.ClientResponseError as exc:
            raise SearchIndexError(
                f"Checking index '{self._index}' failed", status=exc.status, diagnostic=str(exc)
            ) from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise SearchIndexError(
                f"Checking index '{self._index}' failed", status=502, diagnostic=repr(exc)
            ) from exc

    async def _request(
        self,
        method: str,
        path: str,
        json_body: Optional[Dict[str, Any]] = None,
        data: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Send a request and return the decoded JSON body.

        Translates HTTP/network errors into SearchIndexError.
        """
        if self._session is None:
            raise RuntimeError("Elasticsearch adapter not initialized. Use 'async with' context manager.")

        url = f"{self._base_url}{path}"
        try:
            async with self._session.request(method, url, json=json_body, data=data, headers=headers) as response:
                if response.status >= 400:
                    text = await response.text()
                    logger.error(
                        "Elasticsearch request failed. URL: %s, Status: %s, Body: %s",
                        url,
                        response.status,
                        text[:500],
                    )
                    raise SearchIndexError(
                        f"Elasticsearch returned HTTP {response.status} for {method} {path}",
                        status=response.status,
                        diagnostic=text[:1000],
                    )
                try:
                    return await response.json()
                except aiohttp.ContentTypeError:
                    text = await response.text()
                    raise SearchIndexError(
                        "Invalid response content from Elasticsearch",
                        status=502,
                        diagnostic=text[:500],
                    )

        except asyncio.TimeoutError as exc:
            logger.error("Timeout when requesting Elasticsearch. URL: %s", url)
            raise SearchIndexError("Elasticsearch request timed out", status=504) from exc

        except aiohttp.ClientError as exc:
            logger.error("Connection error when requesting Elasticsearch. URL: %s, Error: %s", url, str(exc))
            raise SearchIndexError(
                "Connection error with Elasticsearch", status=502, diagnostic=str(exc)
            ) from exc
