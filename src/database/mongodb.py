"""MongoDB database connection and management for the assessment server.

This module provides MongoDB connection management, the document operations
used by the services, and the transaction context that isolates scoring
writes from the caller's own unit of work.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorClientSession,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo import errors

from src.core.config import get_settings
from src.utils.datetime_utils import utc_now
from src.utils.exceptions import DatabaseError
from src.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)


class MongoDB:
    """MongoDB connection manager and database operations."""

    _client: Optional[AsyncIOMotorClient] = None
    _database: Optional[AsyncIOMotorDatabase] = None
    _initialized: bool = False
    _lock: asyncio.Lock = asyncio.Lock()

    @classmethod
    async def connect(
        cls,
        url: Optional[str] = None,
        db_name: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        """Connect to MongoDB with connection pooling.

        Args:
            url: MongoDB connection URL
            db_name: Database name
            **kwargs: Additional connection parameters
        """
        async with cls._lock:
            if cls._initialized:
                logger.warning("MongoDB already connected")
                return

            try:
                connection_url = url or settings.get_database_url()
                database_name = db_name or settings.MONGODB_DB_NAME

                connection_params = {
                    "maxPoolSize": kwargs.get("max_pool_size", settings.MONGODB_MAX_POOL_SIZE),
                    "minPoolSize": kwargs.get("min_pool_size", settings.MONGODB_MIN_POOL_SIZE),
                    "maxIdleTimeMS": kwargs.get("max_idle_time_ms", settings.MONGODB_MAX_IDLE_TIME_MS),
                    "connectTimeoutMS": kwargs.get("connect_timeout_ms", settings.MONGODB_CONNECT_TIMEOUT_MS),
                    "serverSelectionTimeoutMS": kwargs.get("server_selection_timeout_ms", 5000),
                    "retryWrites": kwargs.get("retry_writes", True),
                    "retryReads": kwargs.get("retry_reads", True),
                    "w": kwargs.get("write_concern", "majority"),
                    "tz_aware": True,
                }

                cls._client = AsyncIOMotorClient(connection_url, **connection_params)
                cls._database = cls._client[database_name]

                await cls._client.server_info()

                cls._initialized = True
                logger.info(
                    "MongoDB connected successfully",
                    extra={
                        "database": database_name,
                        "pool_size": connection_params["maxPoolSize"],
                    }
                )

            except Exception as e:
                cls._client = None
                cls._database = None
                cls._initialized = False
                logger.error(f"MongoDB connection failed: {str(e)}", exc_info=True)
                raise

    @classmethod
    async def disconnect(cls) -> None:
        """Disconnect from MongoDB."""
        async with cls._lock:
            if cls._client is not None:
                cls._client.close()
                cls._client = None
                cls._database = None
                cls._initialized = False
                logger.info("MongoDB disconnected successfully")

    @classmethod
    async def ping(cls) -> bool:
        """Check if MongoDB connection is alive.

        Returns:
            bool: True if connection is alive
        """
        if not cls._initialized or cls._client is None:
            return False

        try:
            await cls._client.admin.command("ping")
            return True
        except Exception as e:
            logger.error(f"MongoDB ping failed: {str(e)}")
            return False

    @classmethod
    def get_collection(cls, name: str) -> AsyncIOMotorCollection:
        """Get a collection by name.

        Args:
            name: Collection name

        Returns:
            Collection instance

        Raises:
            DatabaseError: If the database is not connected
        """
        if cls._database is None:
            raise DatabaseError(
                "MongoDB not connected",
                operation="get_collection",
                collection=name,
            )
        return cls._database[name]

    @classmethod
    async def create_index(
        cls,
        collection_name: str,
        keys: List[Tuple[str, int]],
        **kwargs: Any,
    ) -> bool:
        """Create an index on a collection.

        Args:
            collection_name: Name of the collection
            keys: List of (field, direction) tuples
            **kwargs: Additional index options

        Returns:
            bool: True if index was created
        """
        try:
            collection = cls.get_collection(collection_name)
            index_name = await collection.create_index(keys, **kwargs)
            logger.info(
                f"Created index {index_name} on {collection_name}",
                extra={"keys": keys, "options": kwargs}
            )
            return True
        except errors.OperationFailure as e:
            logger.debug(f"Index not created on {collection_name}: {str(e)}")
            return False
        except Exception as e:
            logger.error(
                f"Failed to create index on {collection_name}: {str(e)}",
                extra={"keys": keys, "options": kwargs}
            )
            return False

    # Document operations

    @classmethod
    async def find_one(
        cls,
        collection_name: str,
        filter_dict: Dict[str, Any],
        projection: Optional[Dict[str, int]] = None,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> Optional[Dict[str, Any]]:
        """Find a single document.

        Args:
            collection_name: Name of the collection
            filter_dict: Query filter
            projection: Fields to include/exclude
            session: Client session when running inside a transaction

        Returns:
            Document or None

        Raises:
            DatabaseError: If the query fails
        """
        collection = cls.get_collection(collection_name)
        try:
            return await collection.find_one(filter_dict, projection=projection, session=session)
        except errors.PyMongoError as e:
            raise DatabaseError(
                f"find_one failed on {collection_name}",
                operation="find_one",
                collection=collection_name,
                query=filter_dict,
                cause=e,
            ) from e

    @classmethod
    async def find_many(
        cls,
        collection_name: str,
        filter_dict: Optional[Dict[str, Any]] = None,
        projection: Optional[Dict[str, int]] = None,
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: int = 0,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> List[Dict[str, Any]]:
        """Find multiple documents.

        Args:
            collection_name: Name of the collection
            filter_dict: Query filter
            projection: Fields to include/exclude
            sort: Sort specification
            limit: Maximum number of documents to return (0 for all)
            session: Client session when running inside a transaction

        Returns:
            List of documents

        Raises:
            DatabaseError: If the query fails
        """
        collection = cls.get_collection(collection_name)
        try:
            cursor = collection.find(filter_dict or {}, projection=projection, session=session)
            if sort:
                cursor = cursor.sort(sort)
            if limit > 0:
                cursor = cursor.limit(limit)
            return await cursor.to_list(length=None)
        except errors.PyMongoError as e:
            raise DatabaseError(
                f"find failed on {collection_name}",
                operation="find",
                collection=collection_name,
                query=filter_dict,
                cause=e,
            ) from e

    @classmethod
    async def count_documents(
        cls,
        collection_name: str,
        filter_dict: Optional[Dict[str, Any]] = None,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> int:
        """Count documents matching a filter.

        Raises:
            DatabaseError: If the count fails
        """
        collection = cls.get_collection(collection_name)
        try:
            return await collection.count_documents(filter_dict or {}, session=session)
        except errors.PyMongoError as e:
            raise DatabaseError(
                f"count failed on {collection_name}",
                operation="count",
                collection=collection_name,
                query=filter_dict,
                cause=e,
            ) from e

    @classmethod
    async def insert_one(
        cls,
        collection_name: str,
        document: Dict[str, Any],
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> str:
        """Insert a single document.

        Args:
            collection_name: Name of the collection
            document: Document to insert
            session: Client session when running inside a transaction

        Returns:
            Inserted document ID

        Raises:
            DatabaseError: If the insert fails, including duplicate keys
        """
        collection = cls.get_collection(collection_name)
        now = utc_now()
        document.setdefault("created_at", now)
        document.setdefault("updated_at", now)
        try:
            result = await collection.insert_one(document, session=session)
            return str(result.inserted_id)
        except errors.PyMongoError as e:
            raise DatabaseError(
                f"insert failed on {collection_name}",
                operation="insert",
                collection=collection_name,
                cause=e,
            ) from e

    @classmethod
    async def update_one(
        cls,
        collection_name: str,
        filter_dict: Dict[str, Any],
        update_dict: Dict[str, Any],
        upsert: bool = False,
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> bool:
        """Update a single document.

        Args:
            collection_name: Name of the collection
            filter_dict: Query filter
            update_dict: Update operations
            upsert: Whether to insert if not found
            session: Client session when running inside a transaction

        Returns:
            bool: True if a document was modified or inserted

        Raises:
            DatabaseError: If the update fails
        """
        collection = cls.get_collection(collection_name)
        update_dict.setdefault("$set", {})["updated_at"] = utc_now()
        try:
            result = await collection.update_one(
                filter_dict, update_dict, upsert=upsert, session=session
            )
            return result.modified_count > 0 or result.upserted_id is not None
        except errors.PyMongoError as e:
            raise DatabaseError(
                f"update failed on {collection_name}",
                operation="update",
                collection=collection_name,
                query=filter_dict,
                cause=e,
            ) from e

    @classmethod
    async def aggregate(
        cls,
        collection_name: str,
        pipeline: List[Dict[str, Any]],
        session: Optional[AsyncIOMotorClientSession] = None,
    ) -> List[Dict[str, Any]]:
        """Execute an aggregation pipeline.

        Raises:
            DatabaseError: If the pipeline fails
        """
        collection = cls.get_collection(collection_name)
        try:
            cursor = collection.aggregate(pipeline, session=session)
            return await cursor.to_list(length=None)
        except errors.PyMongoError as e:
            raise DatabaseError(
                f"aggregate failed on {collection_name}",
                operation="aggregate",
                collection=collection_name,
                cause=e,
            ) from e

    @classmethod
    def transaction(cls) -> "MongoDBTransaction":
        """Open a new, independent transaction context."""
        return MongoDBTransaction(enabled=settings.MONGODB_USE_TRANSACTIONS)


class MongoDBTransaction:
    """Context manager running its body in a fresh MongoDB transaction.

    A new session is always started, so the transaction never joins one the
    caller may already hold. When transactions are disabled (standalone
    servers) the context yields ``None`` and operations run unsessioned.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.session: Optional[AsyncIOMotorClientSession] = None

    async def __aenter__(self) -> Optional[AsyncIOMotorClientSession]:
        if not self.enabled:
            return None
        if MongoDB._client is None:
            raise DatabaseError("MongoDB not connected", operation="start_transaction")
        self.session = await MongoDB._client.start_session()
        self.session.start_transaction()
        return self.session

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.session is None:
            return
        try:
            if exc_type:
                await self.session.abort_transaction()
            else:
                await self.session.commit_transaction()
        finally:
            await self.session.end_session()
            self.session = None


__all__ = [
    "MongoDB",
    "MongoDBTransaction",
]
