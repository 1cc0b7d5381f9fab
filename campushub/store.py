"""
Generic record store over the SQLAlchemy tables.

Rows go in and come out as plain dicts keyed by column name. Every call runs
in its own short transaction; multi-step writes are the caller's business.
"""
import uuid
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog
from sqlalchemy import Date, DateTime, Table, Time, delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .db import Base, SessionLocal
from .errors import StoreError, ValidationError


logger = structlog.get_logger()

FILTER_OPS = {"eq", "neq", "gt", "gte", "lt", "lte", "in", "is_null"}

# (column, op, value); op defaults to eq for 2-tuples
Filter = Tuple[Any, ...]


def _coerce(column, value: Any) -> Any:
    if value is None:
        return None
    python_type = None
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value
    if python_type is uuid.UUID and not isinstance(value, uuid.UUID):
        try:
            return uuid.UUID(str(value))
        except ValueError as exc:
            raise ValidationError(f"Invalid id for {column.name}") from exc
    if isinstance(value, str):
        try:
            if isinstance(column.type, DateTime):
                return datetime.fromisoformat(value.replace("Z", "+00:00"))
            if isinstance(column.type, Date):
                return date.fromisoformat(value)
            if isinstance(column.type, Time):
                return time.fromisoformat(value)
        except ValueError as exc:
            raise ValidationError(f"Invalid {column.name}: {value}") from exc
    return value


def _row_to_dict(row) -> Dict[str, Any]:
    return dict(row._mapping)


class RecordStore:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def _table(self, collection: str) -> Table:
        table = Base.metadata.tables.get(collection)
        if table is None:
            raise ValidationError(f"Unknown collection: {collection}")
        return table

    def _values(self, table: Table, values: Dict[str, Any]) -> Dict[str, Any]:
        out = {}
        for key, value in values.items():
            column = table.c.get(key)
            if column is None:
                raise ValidationError(f"Unknown field {key} on {table.name}")
            out[key] = _coerce(column, value)
        return out

    def _prepare_new(self, table: Table, values: Dict[str, Any]) -> Dict[str, Any]:
        out = self._values(table, values)
        # ids are generated here so the row can be re-selected after insert
        if "id" in table.c and out.get("id") is None:
            out["id"] = uuid.uuid4()
        return out

    def _where(self, table: Table, filters: Optional[Iterable[Filter]]):
        clauses = []
        for f in filters or []:
            if len(f) == 2:
                field, op, value = f[0], "eq", f[1]
            else:
                field, op, value = f
            if op not in FILTER_OPS:
                raise ValidationError(f"Unsupported filter op: {op}")
            column = table.c.get(field)
            if column is None:
                raise ValidationError(f"Unknown field {field} on {table.name}")
            if op == "is_null":
                clauses.append(column.is_(None) if value else column.isnot(None))
            elif op == "in":
                clauses.append(column.in_([_coerce(column, v) for v in value]))
            else:
                v = _coerce(column, value)
                clauses.append({
                    "eq": column == v,
                    "neq": column != v,
                    "gt": column > v,
                    "gte": column >= v,
                    "lt": column < v,
                    "lte": column <= v,
                }[op])
        return clauses

    def _fail(self, action: str, collection: str, exc: Exception) -> StoreError:
        logger.error("store_failed", action=action, collection=collection, error=str(exc))
        return StoreError(f"Record store {action} failed on {collection}", collection=collection)

    # --- writes ---

    def insert(self, collection: str, values: Dict[str, Any]) -> Dict[str, Any]:
        table = self._table(collection)
        row = self._prepare_new(table, values)
        try:
            with self._session_factory() as db:
                db.execute(insert(table).values(**row))
                db.commit()
                saved = db.execute(select(table).where(table.c.id == row["id"])).first()
        except SQLAlchemyError as exc:
            raise self._fail("insert", collection, exc) from exc
        return _row_to_dict(saved)

    def insert_many(self, collection: str, rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Insert all rows in one transaction. Returns them in input order."""
        if not rows:
            return []
        table = self._table(collection)
        prepared = [self._prepare_new(table, r) for r in rows]
        ids = [r["id"] for r in prepared]
        try:
            with self._session_factory() as db:
                db.execute(insert(table), prepared)
                db.commit()
                saved = db.execute(select(table).where(table.c.id.in_(ids))).all()
        except SQLAlchemyError as exc:
            raise self._fail("insert_many", collection, exc) from exc
        by_id = {r._mapping["id"]: _row_to_dict(r) for r in saved}
        return [by_id[i] for i in ids]

    def update(self, collection: str, record_id: Any, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        table = self._table(collection)
        rid = _coerce(table.c.id, record_id)
        changes = self._values(table, values)
        try:
            with self._session_factory() as db:
                if changes:
                    db.execute(update(table).where(table.c.id == rid).values(**changes))
                    db.commit()
                saved = db.execute(select(table).where(table.c.id == rid)).first()
        except SQLAlchemyError as exc:
            raise self._fail("update", collection, exc) from exc
        return _row_to_dict(saved) if saved is not None else None

    def delete(self, collection: str, record_id: Any) -> bool:
        table = self._table(collection)
        rid = _coerce(table.c.id, record_id)
        try:
            with self._session_factory() as db:
                result = db.execute(delete(table).where(table.c.id == rid))
                db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("delete", collection, exc) from exc
        return result.rowcount > 0

    def delete_where(self, collection: str, filters: Iterable[Filter]) -> int:
        table = self._table(collection)
        clauses = self._where(table, filters)
        if not clauses:
            raise ValidationError("delete_where requires at least one filter")
        try:
            with self._session_factory() as db:
                result = db.execute(delete(table).where(*clauses))
                db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("delete_where", collection, exc) from exc
        return int(result.rowcount or 0)

    # --- reads ---

    def get(self, collection: str, record_id: Any) -> Optional[Dict[str, Any]]:
        table = self._table(collection)
        rid = _coerce(table.c.id, record_id)
        try:
            with self._session_factory() as db:
                row = db.execute(select(table).where(table.c.id == rid)).first()
        except SQLAlchemyError as exc:
            raise self._fail("get", collection, exc) from exc
        return _row_to_dict(row) if row is not None else None

    def query(
        self,
        collection: str,
        filters: Optional[Iterable[Filter]] = None,
        order_by: Optional[Any] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Select rows matching all filters.

        order_by may be a column name or a list of names; the direction applies to all of them.
        """
        table = self._table(collection)
        stmt = select(table).where(*self._where(table, filters))
        if order_by:
            names = [order_by] if isinstance(order_by, str) else list(order_by)
            for name in names:
                column = table.c.get(name)
                if column is None:
                    raise ValidationError(f"Unknown field {name} on {table.name}")
                stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            with self._session_factory() as db:
                rows = db.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise self._fail("query", collection, exc) from exc
        return [_row_to_dict(r) for r in rows]

    def count(self, collection: str, filters: Optional[Iterable[Filter]] = None) -> int:
        table = self._table(collection)
        stmt = select(func.count()).select_from(table).where(*self._where(table, filters))
        try:
            with self._session_factory() as db:
                return int(db.execute(stmt).scalar() or 0)
        except SQLAlchemyError as exc:
            raise self._fail("count", collection, exc) from exc


def get_store() -> RecordStore:
    return RecordStore()
