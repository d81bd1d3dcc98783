import asyncio
import logging
from typing import Any, Optional

import requests

from ragkb.core.models.document import QueryMatches

logger = logging.getLogger(__name__)


class ChromaVectorStore:
    """Vector store using ChromaDB HTTP API.

    HTTP calls are blocking ``requests`` calls run in worker threads, so several
    batches can be written concurrently. The server serializes appends.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 8000,
        collection_name: str = "rag_documents",
        tenant: str = "default_tenant",
        database: str = "default_database",
        timeout: float = 30.0,
    ):
        """Initialize ChromaDB client.

        Args:
            host: ChromaDB host.
            port: ChromaDB port.
            collection_name: Collection used by add/query/count.
            tenant: Tenant name.
            database: Database name.
            timeout: Per-request timeout in seconds.
        """
        self._base_url = f"http://{host}:{port}/api/v2"
        self._tenant = tenant
        self._database = database
        self._collection_name = collection_name
        self._timeout = timeout
        self._collection_id: Optional[str] = None
        self._session = requests.Session()

    @property
    def collection_name(self) -> str:
        return self._collection_name

    @property
    def _collections_url(self) -> str:
        return f"{self._base_url}/tenants/{self._tenant}/databases/{self._database}/collections"

    def _request(self, method: str, url: str, **kwargs) -> Any:
        resp = self._session.request(method, url, timeout=self._timeout, **kwargs)
        resp.raise_for_status()
        return resp.json() if resp.content else None

    def _find_collection(self, name: str) -> Optional[str]:
        for col in self._request("GET", self._collections_url) or []:
            if col["name"] == name:
                return col["id"]
        return None

    def _create_collection(self, name: str, metadata: dict) -> str:
        data = self._request(
            "POST",
            self._collections_url,
            json={"name": name, "metadata": {"hnsw:space": "cosine", **metadata}},
        )
        return data["id"]

    async def get_collection(self, name: str) -> Optional[str]:
        col_id = await asyncio.to_thread(self._find_collection, name)
        if col_id and name == self._collection_name:
            self._collection_id = col_id
        return col_id

    async def create_collection(self, name: str, metadata: dict) -> str:
        col_id = await asyncio.to_thread(self._create_collection, name, metadata)
        if name == self._collection_name:
            self._collection_id = col_id
        logger.info(f"Created collection: {name}")
        return col_id

    async def _ensure_collection(self) -> str:
        """Get or create the active collection, return ID."""
        if self._collection_id:
            return self._collection_id
        if await self.get_collection(self._collection_name) is None:
            await self.create_collection(self._collection_name, {})
        return self._collection_id

    async def add(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadatas: list[dict],
    ) -> None:
        """Add vectors to collection."""
        col_id = await self._ensure_collection()
        await asyncio.to_thread(
            self._request,
            "POST",
            f"{self._collections_url}/{col_id}/add",
            json={
                "ids": ids,
                "embeddings": embeddings,
                "documents": documents,
                "metadatas": metadatas,
            },
        )

    async def query(self, query_embedding: list[float], n_results: int = 5) -> QueryMatches:
        """Search by embedding."""
        col_id = await self._ensure_collection()
        data = await asyncio.to_thread(
            self._request,
            "POST",
            f"{self._collections_url}/{col_id}/query",
            json={
                "query_embeddings": [query_embedding],
                "n_results": n_results,
                "include": ["documents", "metadatas", "distances"],
            },
        )

        def first(key: str) -> list:
            rows = (data or {}).get(key) or [[]]
            return list(rows[0] or [])

        return QueryMatches(
            ids=first("ids"),
            texts=first("documents"),
            metadatas=[m or {} for m in first("metadatas")],
            distances=first("distances"),
        )

    async def count(self) -> int:
        """Get vector count."""
        col_id = await self._ensure_collection()
        return int(
            await asyncio.to_thread(self._request, "GET", f"{self._collections_url}/{col_id}/count")
        )

    async def delete_collection(self, name: str) -> None:
        await asyncio.to_thread(self._request, "DELETE", f"{self._collections_url}/{name}")
        if name == self._collection_name:
            self._collection_id = None
        logger.info(f"Deleted collection: {name}")

    def close(self) -> None:
        self._session.close()
