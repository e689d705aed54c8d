"""Supabase persistence for company lookups and job results."""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from supabase import Client, create_client

from qudemo_jobs.config import settings
from qudemo_jobs.jobs.errors import PersistenceError, RecordNotFound

logger = logging.getLogger(__name__)

_client: Optional[Client] = None


def get_supabase() -> Client:
    """Get or create the service-role Supabase client."""
    global _client
    if _client is None:
        if not settings.supabase_url or not settings.supabase_service_role_key:
            raise RuntimeError(
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set"
            )
        _client = create_client(
            settings.supabase_url,
            settings.supabase_service_role_key,
        )
    return _client


class SupabaseRepository:
    """Keyed inserts and lookups used by the job executors.

    supabase-py is synchronous, so each call runs in a worker thread to
    keep the event loop free for the dispatcher.
    """

    def __init__(self, client_factory: Callable[[], Client] = get_supabase):
        self._client_factory = client_factory

    async def get_company_id(self, company_name: str) -> str:
        def query():
            return (
                self._client_factory()
                .table("companies")
                .select("id")
                .eq("name", company_name)
                .limit(1)
                .execute()
            )

        response = await self._run(query, f"company lookup for {company_name}")
        if not response.data:
            raise RecordNotFound(f"Company not found: {company_name}")
        return response.data[0]["id"]

    async def insert_video(self, row: Dict[str, Any]) -> None:
        await self._insert("videos", row)

    async def insert_demo(self, row: Dict[str, Any]) -> None:
        await self._insert("qudemos", row)

    async def insert_question(self, row: Dict[str, Any]) -> None:
        await self._insert("questions", row)

    async def _insert(self, table: str, row: Dict[str, Any]) -> None:
        def query():
            return self._client_factory().table(table).insert(row).execute()

        await self._run(query, f"insert into {table}")

    async def _run(self, query: Callable[[], Any], what: str) -> Any:
        try:
            return await asyncio.to_thread(query)
        except Exception as e:
            logger.error("Supabase %s failed: %s", what, e)
            raise PersistenceError(str(e)) from e
