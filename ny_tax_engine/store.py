"""
Order persistence on SQLAlchemy.

One ``orders`` table. Breakdown and jurisdictions are stored as JSON
text since the store is relational. Supports single inserts, one
transaction per import batch with per-row savepoints, and filtered,
sorted, paginated reads.
"""

from __future__ import annotations

import json
import math
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from loguru import logger
from sqlalchemy import (
    TIMESTAMP,
    Float,
    Integer,
    String,
    Text,
    create_engine,
    event,
    func,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    sessionmaker,
)

from ny_tax_engine.calculator import TaxResolution
from ny_tax_engine.exceptions import PersistenceError, TransactionError


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


class Order(Base):
    """A taxed delivery order."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    subtotal: Mapped[float] = mapped_column(Float, nullable=False)
    tax_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    composite_tax_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    breakdown: Mapped[str | None] = mapped_column(
        Text, nullable=True
    )  # JSON object stored as TEXT
    jurisdictions: Mapped[str | None] = mapped_column(
        Text, nullable=True
    )  # JSON array stored as TEXT
    timestamp: Mapped[str | None] = mapped_column(String, nullable=True)
    customer_name: Mapped[str] = mapped_column(
        String, nullable=False, default="Imported", server_default="Imported"
    )
    status: Mapped[str] = mapped_column(
        String, nullable=False, default="new", server_default="new"
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "subtotal": self.subtotal,
            "tax_amount": self.tax_amount,
            "total_amount": self.total_amount,
            "composite_tax_rate": self.composite_tax_rate,
            "breakdown": json.loads(self.breakdown) if self.breakdown else None,
            "jurisdictions": (
                json.loads(self.jurisdictions) if self.jurisdictions else []
            ),
            "timestamp": self.timestamp,
            "customer_name": self.customer_name,
            "status": self.status,
            "created_at": (
                self.created_at.isoformat(sep=" ") if self.created_at else None
            ),
        }


@dataclass(frozen=True)
class OrderRecord:
    """Column values for one insert, in the store's positional order."""

    latitude: float
    longitude: float
    subtotal: float
    timestamp: Optional[str]
    tax_amount: float
    total_amount: float
    composite_tax_rate: float
    breakdown_json: Optional[str]
    jurisdictions_json: Optional[str]
    customer_name: str = "Imported"

    @classmethod
    def from_resolution(
        cls,
        lat: float,
        lon: float,
        timestamp: Optional[str],
        resolution: TaxResolution,
        customer_name: str = "Imported",
    ) -> "OrderRecord":
        return cls(
            latitude=lat,
            longitude=lon,
            subtotal=float(resolution.subtotal),
            timestamp=timestamp,
            tax_amount=float(resolution.tax_amount),
            total_amount=float(resolution.total_amount),
            composite_tax_rate=float(resolution.composite_tax_rate),
            breakdown_json=json.dumps(resolution.breakdown.to_dict()),
            jurisdictions_json=json.dumps(list(resolution.jurisdictions)),
            customer_name=customer_name,
        )

    def to_model(self) -> Order:
        return Order(
            latitude=self.latitude,
            longitude=self.longitude,
            subtotal=self.subtotal,
            timestamp=self.timestamp,
            tax_amount=self.tax_amount,
            total_amount=self.total_amount,
            composite_tax_rate=self.composite_tax_rate,
            breakdown=self.breakdown_json,
            jurisdictions=self.jurisdictions_json,
            customer_name=self.customer_name,
        )


SORTABLE_COLUMNS = {
    "id": Order.id,
    "created_at": Order.created_at,
    "timestamp": Order.timestamp,
    "subtotal": Order.subtotal,
    "tax_amount": Order.tax_amount,
    "total_amount": Order.total_amount,
}


@dataclass
class OrderQuery:
    """Filters, sort and page for an order listing."""

    page: int = 1
    limit: int = 10
    date_from: Optional[str] = None  # timestamp >= value
    date_to: Optional[str] = None  # timestamp <= value
    subtotal_min: Optional[float] = None
    subtotal_max: Optional[float] = None
    status: Optional[str] = None
    sort_by: str = "created_at"
    descending: bool = True

    def filters(self) -> dict[str, Any]:
        return {
            "from": self.date_from,
            "to": self.date_to,
            "subtotal_min": self.subtotal_min,
            "subtotal_max": self.subtotal_max,
            "status": self.status,
        }


@dataclass
class OrderPage:
    orders: list[dict[str, Any]]
    total: int
    page: int
    limit: int
    filters: dict[str, Any] = field(default_factory=dict)

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": self.orders,
            "pagination": {
                "total": self.total,
                "page": self.page,
                "limit": self.limit,
                "totalPages": self.total_pages,
            },
            "filters": self.filters,
        }


class OrderWriter:
    """Inserts orders inside an open store transaction."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def insert(self, record: OrderRecord, row: Optional[int] = None) -> int:
        """
        Insert one order under a savepoint and return its id.

        A failed insert rolls back only its own savepoint and raises
        PersistenceError; the enclosing transaction stays usable.
        """
        order = record.to_model()
        try:
            with self._session.begin_nested():
                self._session.add(order)
                self._session.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Insert failed: {e.__class__.__name__}: {getattr(e, 'orig', None) or e}",
                row=row,
            ) from e
        return order.id


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite defers BEGIN on its own; hand transaction control to SQLAlchemy.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


class OrderStore:
    """Database service layer for orders."""

    def __init__(
        self, url: str, *, max_page_size: int = 100, create: bool = True
    ) -> None:
        """
        Initialize database connection.

        Args:
            url: Database URL (e.g., "sqlite:///orders.db")
            max_page_size: Upper bound for a listing page
            create: Create the schema if it does not exist
        """
        self._url = url
        self._engine = create_engine(url, echo=False)
        if self._engine.dialect.name == "sqlite":
            _enable_sqlite_savepoints(self._engine)
        self._session_factory = sessionmaker(
            bind=self._engine, class_=Session, expire_on_commit=False
        )
        self.max_page_size = max_page_size
        if create:
            self.create_schema()

    def create_schema(self) -> None:
        Base.metadata.create_all(self._engine)

    def dispose(self) -> None:
        self._engine.dispose()

    @contextmanager
    def transaction(self) -> Iterator[OrderWriter]:
        """
        One atomic unit of work.

        Everything inserted through the yielded writer commits together.
        Any exception inside the block rolls back every insert and
        propagates; a failed commit raises TransactionError.
        """
        session = self._session_factory()
        try:
            yield OrderWriter(session)
        except Exception:
            session.rollback()
            logger.error("Order transaction rolled back")
            raise
        else:
            try:
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error("Order transaction commit failed: {}", e)
                raise TransactionError(f"Commit failed: {e}") from e
        finally:
            session.close()

    def insert_order(self, record: OrderRecord) -> int:
        """Insert a single order in its own transaction and return its id."""
        with self.transaction() as writer:
            return writer.insert(record)

    def get_order(self, order_id: int) -> Optional[dict[str, Any]]:
        with self._session_factory() as session:
            order = session.get(Order, order_id)
            return order.to_dict() if order else None

    def count(self) -> int:
        with self._session_factory() as session:
            return session.scalar(select(func.count()).select_from(Order)) or 0

    def list_orders(self, query: Optional[OrderQuery] = None) -> OrderPage:
        """Filtered, sorted, paginated order listing."""
        query = query or OrderQuery()
        page = max(query.page, 1)
        limit = min(max(query.limit, 1), self.max_page_size)

        conditions = []
        if query.date_from:
            conditions.append(Order.timestamp >= query.date_from)
        if query.date_to:
            conditions.append(Order.timestamp <= query.date_to)
        if query.subtotal_min is not None:
            conditions.append(Order.subtotal >= query.subtotal_min)
        if query.subtotal_max is not None:
            conditions.append(Order.subtotal <= query.subtotal_max)
        if query.status:
            conditions.append(Order.status == query.status)

        sort_column = SORTABLE_COLUMNS.get(query.sort_by)
        if sort_column is None:
            raise ValueError(
                f"Unsupported sort column: {query.sort_by}. "
                f"Choose from: {', '.join(sorted(SORTABLE_COLUMNS))}"
            )
        order_by = (
            [sort_column.desc(), Order.id.desc()]
            if query.descending
            else [sort_column.asc(), Order.id.asc()]
        )

        count_stmt = select(func.count()).select_from(Order)
        rows_stmt = select(Order)
        if conditions:
            count_stmt = count_stmt.where(*conditions)
            rows_stmt = rows_stmt.where(*conditions)

        with self._session_factory() as session:
            total = session.scalar(count_stmt) or 0
            rows = session.scalars(
                rows_stmt.order_by(*order_by).limit(limit).offset((page - 1) * limit)
            ).all()
            orders = [row.to_dict() for row in rows]

        return OrderPage(
            orders=orders,
            total=total,
            page=page,
            limit=limit,
            filters=query.filters(),
        )
