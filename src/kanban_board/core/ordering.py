from collections.abc import Sequence

from kanban_board.models import Record


def reorder(records: Sequence[Record], external_ids: Sequence[str] | None, id_field: str) -> list[Record]:
    """Order ``records`` by ``external_ids``.

    Without an external order (``None`` or empty) the records are returned in
    retrieval order. Otherwise the external order is authoritative: ids without
    a record are skipped and records whose id is not listed are dropped.
    """
    if not external_ids:
        return list(records)

    by_id: dict[str, Record] = {}
    for record in records:
        record_id = record.get(id_field)
        if record_id is not None:
            by_id.setdefault(str(record_id), record)
    return [by_id[record_id] for record_id in external_ids if record_id in by_id]
