"""
Relational Store Module

Writes source/destination relations into a PostgreSQL table, creating the
table if it does not exist yet. Rows are inserted in batches; a batch whose
affected-row count differs from its size is logged as a warning and the write
carries on.

Each write creates its own engine without a connection pool and disposes of
it afterwards, so no connection outlives the call.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    SmallInteger,
    String,
    Table,
    create_engine,
)
from sqlalchemy.pool import NullPool

from ..config import INSERT_BATCH_SIZE, POSTGRES_URL
from ..models import TripCandidate

module_logger = logging.getLogger(__name__)


def relation_table(table_name: str, metadata: Optional[MetaData] = None) -> Table:
    """The 14-column relation table: generated key plus 13 relation attributes."""
    return Table(
        table_name,
        metadata if metadata is not None else MetaData(),
        Column("id", BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True),
        Column("sourceLat", Float, nullable=False),
        Column("sourceLon", Float, nullable=False),
        Column("destinationLat", Float, nullable=False),
        Column("destinationLon", Float, nullable=False),
        Column("lastActivity", DateTime(timezone=True), nullable=False),
        Column("sourceRequest", DateTime(timezone=True), nullable=False),
        Column("destinationRequest", DateTime(timezone=True), nullable=False),
        Column("plateNumber", String(7), nullable=False),
        Column("sourceBattery", SmallInteger, nullable=False),
        Column("destinationBattery", SmallInteger, nullable=False),
        Column("sourceRange", Integer, nullable=False),
        Column("destinationRange", Integer, nullable=False),
        Column("sourceId", String(24), nullable=False),
        Column("destinationId", String(24), nullable=False),
    )


def relation_row(relation: TripCandidate) -> Dict[str, Any]:
    source, destination = relation.source, relation.destination
    return {
        "sourceLat": source.latitude,
        "sourceLon": source.longitude,
        "destinationLat": destination.latitude,
        "destinationLon": destination.longitude,
        "lastActivity": destination.last_activity_at,
        "sourceRequest": source.request_time,
        "destinationRequest": destination.request_time,
        "plateNumber": source.plate_number,
        "sourceBattery": source.battery_percentage,
        "destinationBattery": destination.battery_percentage,
        "sourceRange": source.meter_range,
        "destinationRange": destination.meter_range,
        "sourceId": source.id,
        "destinationId": destination.id,
    }


class PostgresConnection:

    def __init__(
            self,
            url: str = POSTGRES_URL,
            batch_size: int = INSERT_BATCH_SIZE,
            logger: Optional[logging.Logger] = None,
            engine_factory=create_engine,
            ) -> None:
        if not url:
            raise ValueError("A database URL is required")
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.url = url
        self.batch_size = batch_size
        self.logger = logger or module_logger
        self.engine_factory = engine_factory

    def write(self, relations: Iterable[TripCandidate], table_name: str) -> int:
        """
        Create the relation table if needed and insert all relations.

        Returns:
            int: Rows reported as inserted by the database.
        """
        rows: List[Dict[str, Any]] = [relation_row(relation) for relation in relations]
        table = relation_table(table_name)
        insert = table.insert().execution_options(preserve_rowcount=True)
        inserted = 0

        engine = self.engine_factory(self.url, poolclass=NullPool)
        try:
            with engine.begin() as connection:
                table.create(connection, checkfirst=True)

                for start in range(0, len(rows), self.batch_size):
                    batch = rows[start:start + self.batch_size]
                    affected = connection.execute(insert, batch).rowcount
                    if affected != len(batch):
                        self.logger.warning(
                            f"Unexpected number of rows affected after insert: {affected} instead of {len(batch)}",
                            extra={
                                "operation": "relations_write",
                                "table": table_name,
                                "batch_start": start,
                                "expected": len(batch),
                                "affected": affected
                            })
                    inserted += max(affected, 0)
        finally:
            engine.dispose()

        self.logger.info(f"Wrote {inserted} relations", extra={
            "operation": "relations_write",
            "table": table_name,
            "relations": len(rows),
            "inserted": inserted
        })
        return inserted
