"""
tutorhub/db/supabase.py
Supabase client configuration and helper functions

Billing records live in the ``payments`` table, one row per record, with the
installment history embedded as a JSON array in the ``installments`` column.
"""
from supabase import create_client, Client
from tutorhub.core.config import settings
from tutorhub.core.exceptions import PersistenceError
from functools import lru_cache
from typing import Optional, Dict, List, Any
import logging

logger = logging.getLogger(__name__)

# ============================================
# CLIENT FACTORY FUNCTIONS
# ============================================

@lru_cache()
def get_supabase_client() -> Client:
    """
    Get Supabase client instance (cached)
    Uses the anon/public key - for regular operations

    Returns:
        Client: Supabase client instance

    Raises:
        PersistenceError: If client creation fails
    """
    try:
        supabase: Client = create_client(
            supabase_url=settings.SUPABASE_URL,
            supabase_key=settings.SUPABASE_KEY
        )
        logger.info("Supabase client created successfully")
        return supabase
    except Exception as e:
        logger.error(f"Failed to create Supabase client: {e}")
        raise PersistenceError(f"Supabase connection failed: {str(e)}")


# ============================================
# HELPER CLASS FOR COMMON QUERIES
# ============================================

class SupabaseQueries:
    """
    Helper class for common Supabase database operations
    Provides simplified methods for CRUD operations
    """

    def __init__(self, client: Client = None):
        """
        Initialize SupabaseQueries

        Args:
            client: Optional Supabase client. If not provided, uses the cached one.
        """
        self.client = client or get_supabase_client()

    # ============================================
    # CREATE OPERATIONS
    # ============================================

    async def insert_one(self, table: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            response = self.client.table(table).insert(data).execute()

            if response.data and len(response.data) > 0:
                logger.info(f"Inserted record into {table}")
                return response.data[0]
            else:
                logger.warning(f"Insert into {table} returned no data")
                return None

        except Exception as e:
            logger.error(f"Error inserting into {table}: {e}")
            raise PersistenceError(f"Failed to insert into {table}: {str(e)}")

    # ============================================
    # READ OPERATIONS
    # ============================================

    async def select_all(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        ascending: bool = True,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Select all records from a table with optional filters

        Args:
            table: Table name
            filters: Dictionary of column:value pairs to filter by
            order_by: Column name to order results by
            ascending: Sort direction (True for ASC, False for DESC)
            limit: Maximum number of records to return

        Returns:
            list: List of records matching the criteria

        Example:
            >>> # Every billing record for one student, newest first
            >>> records = await db.select_all(
            ...     "payments",
            ...     filters={"student_id": "some-uuid"},
            ...     order_by="created_at",
            ...     ascending=False
            ... )
        """
        try:
            query = self.client.table(table).select("*")

            if filters:
                for key, value in filters.items():
                    query = query.eq(key, value)

            if order_by:
                query = query.order(order_by, desc=not ascending)

            if limit:
                query = query.limit(limit)

            response = query.execute()
            logger.info(f"Selected {len(response.data)} records from {table}")
            return response.data

        except Exception as e:
            logger.error(f"Error selecting from {table}: {e}")
            raise PersistenceError(f"Failed to select from {table}: {str(e)}")

    async def select_by_id(
        self,
        table: str,
        id_column: str,
        id_value: Any
    ) -> Optional[Dict[str, Any]]:
        """
        Select a single record by its ID

        Returns:
            dict: The record if found, None otherwise
        """
        try:
            response = self.client.table(table).select("*").eq(id_column, id_value).execute()

            if response.data and len(response.data) > 0:
                logger.info(f"Found record in {table} with {id_column}={id_value}")
                return response.data[0]
            else:
                logger.info(f"No record found in {table} with {id_column}={id_value}")
                return None

        except Exception as e:
            logger.error(f"Error selecting from {table} by ID: {e}")
            raise PersistenceError(f"Failed to select from {table}: {str(e)}")

    async def select_one(
        self,
        table: str,
        filters: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """
        Select a single record matching the filters

        Example:
            >>> existing = await db.select_one(
            ...     "payments",
            ...     {"student_id": "uuid", "period": "October 2026"}
            ... )
        """
        try:
            query = self.client.table(table).select("*")

            for key, value in filters.items():
                query = query.eq(key, value)

            response = query.limit(1).execute()

            if response.data and len(response.data) > 0:
                return response.data[0]
            return None

        except Exception as e:
            logger.error(f"Error selecting one from {table}: {e}")
            raise PersistenceError(f"Failed to select from {table}: {str(e)}")

    # ============================================
    # UPDATE OPERATIONS
    # ============================================

    async def update_where(
        self,
        table: str,
        filters: Dict[str, Any],
        data: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """
        Update the records matching every filter

        Used as a conditional write: filtering on a version column makes the
        update a no-op (empty result) when another writer got there first.

        Returns:
            list: Updated records, empty when nothing matched

        Example:
            >>> updated = await db.update_where(
            ...     "payments",
            ...     {"payment_id": "uuid", "version": 4},
            ...     {"amount_paid": 50000, "version": 5}
            ... )
        """
        try:
            query = self.client.table(table).update(data)

            for key, value in filters.items():
                query = query.eq(key, value)

            response = query.execute()
            logger.info(f"Updated {len(response.data)} records in {table}")
            return response.data

        except Exception as e:
            logger.error(f"Error updating {table}: {e}")
            raise PersistenceError(f"Failed to update {table}: {str(e)}")

    # ============================================
    # DELETE OPERATIONS
    # ============================================

    async def delete_by_id(
        self,
        table: str,
        id_column: str,
        id_value: Any
    ) -> List[Dict[str, Any]]:
        """
        Delete a record by its ID

        Returns:
            list: Deleted record(s)
        """
        try:
            response = self.client.table(table).delete().eq(id_column, id_value).execute()
            logger.info(f"Deleted record from {table} with {id_column}={id_value}")
            return response.data

        except Exception as e:
            logger.error(f"Error deleting from {table}: {e}")
            raise PersistenceError(f"Failed to delete from {table}: {str(e)}")


# ============================================
# CONVENIENCE FUNCTIONS
# ============================================

async def test_connection() -> bool:
    """
    Test Supabase connection

    Returns:
        bool: True if connection successful, False otherwise
    """
    try:
        client = get_supabase_client()
        client.table("payments").select("payment_id").limit(1).execute()
        logger.info("Supabase connection test successful")
        return True
    except Exception as e:
        logger.error(f"Supabase connection test failed: {e}")
        return False


# ============================================
# EXPORT
# ============================================

__all__ = [
    'get_supabase_client',
    'SupabaseQueries',
    'test_connection',
]
