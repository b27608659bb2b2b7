import logging
from collections.abc import Sequence

from kanban_board.core.ports.record_store import RecordStore
from kanban_board.errors import BoardError, RetrievalFailedError
from kanban_board.models import QueryDocument, Record

logger = logging.getLogger(__name__)


async def retrieve_query(store: RecordStore, query: QueryDocument) -> list[Record]:
    """Return every record of ``query``, following continuation tokens until the last page."""
    records: list[Record] = []
    continuation: str | None = None
    pages = 0
    try:
        while True:
            page = await store.retrieve_page(query, continuation)
            pages += 1
            records.extend(page.records)
            if not page.more_records:
                break
            if page.continuation is None or page.continuation == continuation:
                raise RetrievalFailedError(
                    f"Record store reported more {query.entity} pages without a new continuation token",
                    entity=query.entity,
                )
            continuation = page.continuation
    except BoardError:
        raise
    except Exception as exc:
        raise RetrievalFailedError(f"Retrieving {query.entity} failed: {exc}", entity=query.entity) from exc

    logger.debug("retrieved %d %s record(s) in %d page(s)", len(records), query.entity, pages)
    return records


async def retrieve_all(store: RecordStore, queries: Sequence[QueryDocument]) -> list[Record]:
    """Execute ``queries`` one after another and concatenate their records in execution order."""
    records: list[Record] = []
    for query in queries:
        records.extend(await retrieve_query(store, query))
    if len(queries) > 1:
        logger.debug("merged %d record(s) from %d batched queries", len(records), len(queries))
    return records
