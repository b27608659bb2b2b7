"""Record store backed by a relational database through SQLAlchemy Core.

Each entity maps to a table of the same name. Query documents are translated to
``SELECT`` statements on lightweight ``table()``/``column()`` constructs, so no
schema reflection is needed. Comparisons are done on the text form of a column,
matching the string values a FetchXML condition carries.
"""

import logging
import uuid
from typing import Any

from sqlalchemy import (
    ColumnElement,
    Select,
    String,
    and_,
    cast,
    column,
    delete,
    insert,
    literal_column,
    or_,
    select,
    table,
    update,
)
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.sql.selectable import FromClause

from kanban_board.core.ports.record_store import RecordPage
from kanban_board.errors import QueryMalformedError
from kanban_board.models import Condition, Filter, LinkEntity, QueryDocument

logger = logging.getLogger(__name__)

_DEFAULT_PAGE_SIZE = 5000


def _filter_columns(filters: list[Filter]) -> set[str]:
    names: set[str] = set()
    for flt in filters:
        names.update(c.attribute for c in flt.conditions)
        names.update(_filter_columns(flt.filters))
    return names


def _link_columns(link: LinkEntity) -> set[str]:
    names = {a for a in link.attributes if a} | _filter_columns(link.filters)
    if link.from_attribute:
        names.add(link.from_attribute)
    names.update(nested.to_attribute for nested in link.link_entities if nested.to_attribute)
    return names


def _table(name: str, columns: set[str], alias: str | None = None) -> FromClause:
    clause = table(name, *(column(c) for c in sorted(columns)))
    return clause.alias(alias) if alias else clause


def _condition_clause(source: FromClause, condition: Condition) -> ColumnElement[bool]:
    col = source.c[condition.attribute]
    as_text = cast(col, String)
    operator = condition.operator.lower()
    if operator == "eq":
        return as_text == condition.value
    if operator == "ne":
        return or_(as_text != condition.value, col.is_(None))
    if operator == "in":
        return as_text.in_(condition.values)
    if operator == "not-in":
        return or_(as_text.not_in(condition.values), col.is_(None))
    if operator == "null":
        return col.is_(None)
    if operator == "not-null":
        return col.is_not(None)
    if operator == "like":
        return as_text.like(condition.value or "")
    raise QueryMalformedError(f"Unsupported condition operator: {condition.operator!r}")


def _filter_clause(source: FromClause, flt: Filter) -> ColumnElement[bool] | None:
    clauses = [_condition_clause(source, c) for c in flt.conditions]
    clauses.extend(c for c in (_filter_clause(source, nested) for nested in flt.filters) if c is not None)
    if not clauses:
        return None
    return or_(*clauses) if flt.type.lower() == "or" else and_(*clauses)


def _join_links(
    joined: FromClause,
    parent: FromClause,
    links: list[LinkEntity],
    where: list[ColumnElement[bool]],
) -> FromClause:
    for link in links:
        if not link.from_attribute or not link.to_attribute:
            raise QueryMalformedError(f"link-entity {link.name} needs from and to attributes")
        linked = _table(link.name, _link_columns(link), link.alias or link.name)
        on_clause = linked.c[link.from_attribute] == parent.c[link.to_attribute]
        joined = joined.join(linked, on_clause, isouter=link.link_type.lower() == "outer")
        where.extend(c for c in (_filter_clause(linked, f) for f in link.filters) if c is not None)
        joined = _join_links(joined, linked, link.link_entities, where)
    return joined


def build_select(query: QueryDocument, offset: int = 0, limit: int | None = None) -> Select[Any]:
    columns = set(query.attributes) | _filter_columns(query.filters) | {o.attribute for o in query.orders}
    columns.update(link.to_attribute for link in query.link_entities if link.to_attribute)
    root = _table(query.entity, columns)

    where: list[ColumnElement[bool]] = []
    where.extend(c for c in (_filter_clause(root, f) for f in query.filters) if c is not None)
    joined = _join_links(root, root, query.link_entities, where)

    if query.attributes and not query.all_attributes:
        stmt = select(*(root.c[a] for a in query.attributes))
    else:
        stmt = select(literal_column(f"{query.entity}.*"))
    stmt = stmt.select_from(joined)
    if where:
        stmt = stmt.where(and_(*where))
    for order in query.orders:
        col = root.c[order.attribute]
        stmt = stmt.order_by(col.desc() if order.descending else col.asc())
    if offset:
        stmt = stmt.offset(offset)
    if limit is not None:
        stmt = stmt.limit(limit)
    return stmt


class SqlRecordStore:
    def __init__(self, engine: AsyncEngine, page_size: int = _DEFAULT_PAGE_SIZE) -> None:
        self._engine = engine
        self.page_size = page_size

    async def retrieve_page(self, query: QueryDocument, continuation: str | None = None) -> RecordPage:
        offset = int(continuation) if continuation else 0
        stmt = build_select(query, offset=offset, limit=self.page_size + 1)
        async with self._engine.connect() as conn:
            result = await conn.execute(stmt)
            rows = [dict(row._mapping) for row in result]

        more = len(rows) > self.page_size
        logger.debug("%s page at offset %d: %d row(s)", query.entity, offset, min(len(rows), self.page_size))
        return RecordPage(
            records=rows[: self.page_size],
            more_records=more,
            continuation=str(offset + self.page_size) if more else None,
        )

    async def create_record(self, entity: str, id_field: str, values: dict[str, Any]) -> str:
        record_id = str(values.get(id_field) or uuid.uuid4())
        row = {**values, id_field: record_id}
        target = table(entity, *(column(name) for name in row))
        async with self._engine.begin() as conn:
            await conn.execute(insert(target).values(**row))
        return record_id

    async def update_record(self, entity: str, id_field: str, record_id: str, changes: dict[str, Any]) -> None:
        target = table(entity, column(id_field), *(column(name) for name in changes if name != id_field))
        stmt = update(target).where(cast(target.c[id_field], String) == record_id).values(**changes)
        async with self._engine.begin() as conn:
            result = await conn.execute(stmt)
            updated = result.rowcount
        if updated == 0:
            raise KeyError(f"{entity} {record_id} not found")

    async def delete_record(self, entity: str, id_field: str, record_id: str) -> None:
        target = table(entity, column(id_field))
        async with self._engine.begin() as conn:
            result = await conn.execute(delete(target).where(cast(target.c[id_field], String) == record_id))
            deleted = result.rowcount
        if deleted == 0:
            raise KeyError(f"{entity} {record_id} not found")

    async def ping(self) -> bool:
        try:
            async with self._engine.connect() as conn:
                await conn.execute(select(1))
            return True
        except Exception:
            logger.warning("record store ping failed", exc_info=True)
            return False

    async def dispose(self) -> None:
        await self._engine.dispose()
