import json
import re
import uuid
from pathlib import Path
from typing import Any

from kanban_board.core.ports.record_store import RecordPage
from kanban_board.models import Condition, Filter, QueryDocument, Record

_DEFAULT_PAGE_SIZE = 5000


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _like(pattern: str) -> re.Pattern[str]:
    parts = (re.escape(p) for p in pattern.split("%"))
    return re.compile("^" + ".*".join(parts) + "$", re.IGNORECASE | re.DOTALL)


def _matches_condition(record: Record, condition: Condition) -> bool:
    actual = _as_text(record.get(condition.attribute))
    operator = condition.operator.lower()
    if operator == "eq":
        return actual is not None and actual == condition.value
    if operator == "ne":
        return actual != condition.value
    if operator == "in":
        return actual is not None and actual in condition.values
    if operator == "not-in":
        return actual not in condition.values
    if operator == "null":
        return actual is None
    if operator == "not-null":
        return actual is not None
    if operator == "like":
        return actual is not None and bool(_like(condition.value or "").match(actual))
    raise ValueError(f"Unsupported condition operator: {condition.operator!r}")


def _matches_filter(record: Record, flt: Filter) -> bool:
    results = [_matches_condition(record, c) for c in flt.conditions]
    results.extend(_matches_filter(record, nested) for nested in flt.filters)
    if not results:
        return True
    return any(results) if flt.type.lower() == "or" else all(results)


def _project(record: Record, attributes: list[str]) -> Record:
    if not attributes:
        return dict(record)
    wanted = set(attributes)
    projected: Record = {}
    for key, value in record.items():
        base = key.split("@", 1)[0]
        if base in wanted or (base.startswith("_") and base.endswith("_value") and base[1:-6] in wanted):
            projected[key] = value
    return projected


class InMemoryRecordStore:
    """Record store over plain dictionaries.

    Evaluates filters, orders and projection of a ``QueryDocument``; link-entities
    are not joined. Every executed query is kept in ``executed`` and every change
    in ``changes`` as ``(action, entity, record_id, values)``.
    """

    def __init__(self, page_size: int = _DEFAULT_PAGE_SIZE) -> None:
        self.tables: dict[str, list[Record]] = {}
        self.executed: list[QueryDocument] = []
        self.changes: list[tuple[str, str, str, dict[str, Any]]] = []
        self.page_size = page_size

    @classmethod
    def from_file(cls, path: str | Path, page_size: int = _DEFAULT_PAGE_SIZE) -> "InMemoryRecordStore":
        """Load ``{"entity": [record, ...], ...}`` from a JSON file."""
        store = cls(page_size=page_size)
        content = json.loads(Path(path).read_text(encoding="utf-8"))
        for entity, records in content.items():
            store.add_records(entity, records)
        return store

    def add_records(self, entity: str, records: list[Record]) -> None:
        self.tables.setdefault(entity, []).extend(dict(r) for r in records)

    def _index_of(self, entity: str, id_field: str, record_id: str) -> int:
        for index, row in enumerate(self.tables.get(entity, [])):
            if str(row.get(id_field)) == record_id:
                return index
        raise KeyError(f"{entity} {record_id} not found")

    async def retrieve_page(self, query: QueryDocument, continuation: str | None = None) -> RecordPage:
        if continuation is None:
            self.executed.append(query)
        rows = [r for r in self.tables.get(query.entity, []) if all(_matches_filter(r, f) for f in query.filters)]
        for order in reversed(query.orders):
            rows.sort(key=lambda r: (r.get(order.attribute) is None, r.get(order.attribute)), reverse=order.descending)

        start = int(continuation) if continuation else 0
        end = start + self.page_size
        page = [_project(r, [] if query.all_attributes else query.attributes) for r in rows[start:end]]
        more = end < len(rows)
        return RecordPage(records=page, more_records=more, continuation=str(end) if more else None)

    async def create_record(self, entity: str, id_field: str, values: dict[str, Any]) -> str:
        record_id = str(values.get(id_field) or uuid.uuid4())
        self.tables.setdefault(entity, []).append({**values, id_field: record_id})
        self.changes.append(("create", entity, record_id, values))
        return record_id

    async def update_record(self, entity: str, id_field: str, record_id: str, changes: dict[str, Any]) -> None:
        rows = self.tables.get(entity, [])
        index = self._index_of(entity, id_field, record_id)
        rows[index] = {**rows[index], **changes}
        self.changes.append(("update", entity, record_id, changes))

    async def delete_record(self, entity: str, id_field: str, record_id: str) -> None:
        del self.tables[entity][self._index_of(entity, id_field, record_id)]
        self.changes.append(("delete", entity, record_id, {}))

    async def ping(self) -> bool:
        return True

    async def dispose(self) -> None:
        pass
