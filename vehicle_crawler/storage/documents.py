"""
Document Store Module
------------------------------------------------------------------------------------
MongoDB access for the crawler (one batch insert per crawl run) and the
processor (all records of a collection, sorted by plate fragment and request
time).

Every operation opens its own client and closes it again on every exit path;
there is no pooling and no reuse of a client across calls.

Functions (methods of MongoConnection):
    check: Startup check, counts the documents of a collection
    write: Inserts the vehicle samples of one crawl run
    records: Loads the stored records sorted for trip inference
"""

import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional

from pymongo import ASCENDING, MongoClient
from pymongo.errors import PyMongoError

from ..config import MONGO_DATABASE, MONGO_HOST, MONGO_PASSWORD, MONGO_PORT, MONGO_USER
from ..exceptions import StartupError
from ..models import StoredRecord, VehicleSample

module_logger = logging.getLogger(__name__)


class MongoConnection:

    def __init__(
            self,
            host: str = MONGO_HOST,
            port: int = MONGO_PORT,
            database: str = MONGO_DATABASE,
            username: str = MONGO_USER,
            password: str = MONGO_PASSWORD,
            logger: Optional[logging.Logger] = None,
            client_factory=MongoClient,
            ) -> None:
        for name, value in (("host", host), ("database", database), ("username", username), ("password", password)):
            if value is None:
                raise StartupError(f"Mongo {name} is required")
        self.host = host
        self.port = port
        self.database = database
        self.username = username
        self.password = password
        self.logger = logger or module_logger
        self.client_factory = client_factory

    @contextmanager
    def _client(self) -> Iterator:
        client = self.client_factory(
            host=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            retryWrites=True,
            tz_aware=True,
        )
        try:
            yield client
        finally:
            client.close()

    # ----------------------------------------------------------------------------------------------------------

    def check(self, collection_name: str) -> int:
        """Count the documents of a collection; any failure is a fatal startup error."""
        try:
            with self._client() as client:
                count = client[self.database][collection_name].count_documents({})
        except PyMongoError as e:
            raise StartupError(f"Mongo database at {self.host}:{self.port} is not reachable: {e}") from e

        self.logger.info(f"Connected to mongoDB, {count} {collection_name} found.", extra={
            "operation": "store_check",
            "collection": collection_name,
            "documents": count
        })
        return count

    # ----------------------------------------------------------------------------------------------------------

    def write(self, samples: Iterable[VehicleSample], collection_name: str) -> int:
        """Insert all samples of a crawl run in one unordered batch."""
        documents = [sample.to_document() for sample in samples]
        if not documents:
            self.logger.info("No vehicles to persist", extra={
                "operation": "store_write",
                "collection": collection_name
            })
            return 0

        with self._client() as client:
            result = client[self.database][collection_name].insert_many(documents, ordered=False)

        self.logger.info(f"Persisted {len(result.inserted_ids)} vehicles", extra={
            "operation": "store_write",
            "collection": collection_name,
            "inserted": len(result.inserted_ids)
        })
        return len(result.inserted_ids)

    # ----------------------------------------------------------------------------------------------------------

    def records(self, collection_name: str) -> List[StoredRecord]:
        """All records of a collection, sorted by plate fragment and request time."""
        with self._client() as client:
            # Large collections exceed the in-memory sort limit of the server
            cursor = (client[self.database][collection_name]
                      .find()
                      .sort([("last_three", ASCENDING), ("request_time", ASCENDING)])
                      .allow_disk_use(True))
            records = [StoredRecord.from_document(document) for document in cursor]

        self.logger.info(f"Loaded {len(records)} records", extra={
            "operation": "store_read",
            "collection": collection_name,
            "records": len(records)
        })
        return records
