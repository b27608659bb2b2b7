from dataclasses import dataclass, field
from typing import Any, Protocol

from kanban_board.models import QueryDocument, Record


@dataclass(frozen=True)
class RecordPage:
    records: list[Record] = field(default_factory=list)
    more_records: bool = False
    continuation: str | None = None


class RecordStore(Protocol):
    async def retrieve_page(self, query: QueryDocument, continuation: str | None = None) -> RecordPage: ...

    async def create_record(self, entity: str, id_field: str, values: dict[str, Any]) -> str: ...

    async def update_record(self, entity: str, id_field: str, record_id: str, changes: dict[str, Any]) -> None: ...

    async def delete_record(self, entity: str, id_field: str, record_id: str) -> None: ...

    async def ping(self) -> bool: ...

    async def dispose(self) -> None: ...
