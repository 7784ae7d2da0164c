"""
Supabase-backed key-value storage.
Each key is one row of a two-column table (key, value).
"""

import asyncio
import os
from typing import Optional

import structlog
from dotenv import load_dotenv
from supabase import Client, create_client

from src.storage.kv_storage import KeyValueStorage, StorageError

load_dotenv()

logger = structlog.get_logger()

_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """
    Shared Supabase client, created from SUPABASE_URL and SUPABASE_KEY on first use.

    Raises:
        ValueError: If SUPABASE_URL or SUPABASE_KEY are not set
    """
    global _client
    if _client is None:
        supabase_url = os.getenv("SUPABASE_URL")
        supabase_key = os.getenv("SUPABASE_KEY")

        if not supabase_url or not supabase_key:
            raise ValueError(
                "SUPABASE_URL and SUPABASE_KEY must be set in environment variables"
            )

        _client = create_client(supabase_url, supabase_key)

    return _client


def reset_supabase_client() -> None:
    """Forget the shared client; the next call reads the environment again."""
    global _client
    _client = None


class SupabaseStorage(KeyValueStorage):
    """Reads and writes dispute collections as rows of a Supabase table."""

    def __init__(self, db_client: Optional[Client] = None, table_name: str = "kv_store"):
        """
        Args:
            db_client: Optional Supabase client. Defaults to the shared client.
            table_name: Table holding the key/value rows
        """
        self.db = db_client or get_supabase_client()
        self.table_name = table_name

    def _select(self, key: str) -> Optional[str]:
        response = (
            self.db.table(self.table_name)
            .select("value")
            .eq("key", key)
            .execute()
        )
        if response.data:
            return response.data[0]["value"]
        return None

    def _upsert(self, key: str, value: str) -> None:
        response = (
            self.db.table(self.table_name)
            .upsert({"key": key, "value": value}, on_conflict="key")
            .execute()
        )
        if not response.data:
            raise StorageError(f"Supabase returned no row for key {key}")

    async def get_item(self, key: str) -> Optional[str]:
        """
        Raises:
            StorageError: If the query fails
        """
        try:
            return await asyncio.to_thread(self._select, key)
        except Exception as e:
            raise StorageError(f"Database error while reading {key}: {str(e)}")

    async def set_item(self, key: str, value: str) -> None:
        """
        Raises:
            StorageError: If the upsert fails or writes nothing
        """
        try:
            await asyncio.to_thread(self._upsert, key, value)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Database error while writing {key}: {str(e)}")
        logger.debug("Storage key written", key=key, table=self.table_name)
