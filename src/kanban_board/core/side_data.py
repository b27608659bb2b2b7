"""Subscriptions and notifications of the current user: grouping by board record, and changes to them."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Iterable, Sequence
from datetime import datetime, timezone
from typing import Any, TypeVar

from kanban_board.config import BoardEntity, BoardViewConfig
from kanban_board.core.ports.record_store import RecordStore
from kanban_board.core.retrieval import retrieve_query
from kanban_board.errors import ActionNotAllowedError, BoardError, RetrievalFailedError
from kanban_board.models import Condition, Filter, Order, QueryDocument, Record

logger = logging.getLogger(__name__)

NOTIFICATION_DATA_FIELD = "oss_data"
EMAIL_ENABLED_FIELD = "oss_emailnotificationsenabled"
EMAIL_SENDER_FIELD = "oss_emailnotificationssender"

_T = TypeVar("_T")


def lookup_value_field(lookup: str | None) -> str | None:
    """Return the attribute under which a lookup's raw id is delivered (``_<lookup>_value``)."""
    return f"_{lookup}_value" if lookup else None


def group_by_parent(
    records: Iterable[Record],
    primary_key: str | None,
    secondary_key: str | None = None,
) -> dict[Any, list[Record]]:
    """Bucket ``records`` by parent id, keeping input order inside each bucket.

    The parent id is the ``primary_key`` value, or the ``secondary_key`` value
    when the primary one is missing. Records resolving to neither land in the
    ``None`` bucket.
    """
    groups: dict[Any, list[Record]] = {}
    for record in records:
        parent_id = record.get(primary_key) if primary_key else None
        if parent_id is None and secondary_key:
            parent_id = record.get(secondary_key)
        groups.setdefault(parent_id, []).append(record)
    return groups


def side_query(entity: str, owner_field: str, order_field: str, user_id: str) -> QueryDocument:
    """Query for the current user's side records, newest first."""
    return QueryDocument(
        entity=entity,
        filters=[Filter(conditions=[Condition(attribute=owner_field, operator="eq", value=user_id)])],
        orders=[Order(attribute=order_field, descending=True)],
        no_lock=True,
    )


def _lookup_keys(config: BoardViewConfig, kind: str) -> tuple[str | None, str | None]:
    primary = lookup_value_field(getattr(config.primary_entity, kind))
    secondary = lookup_value_field(getattr(config.secondary_entity, kind)) if config.secondary_entity else None
    return primary, secondary


def parse_notification(record: Record) -> Record:
    raw = record.get(NOTIFICATION_DATA_FIELD)
    if not raw:
        return {**record, "parsed": None}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise RetrievalFailedError(
            f"Notification {record.get('oss_notificationid', '?')} carries invalid data: {exc}"
        ) from exc
    return {**record, "parsed": parsed}


async def fetch_subscriptions(store: RecordStore, config: BoardViewConfig, user_id: str) -> dict[Any, list[Record]]:
    query = side_query(config.subscription_entity, config.side_owner_field, config.side_order_field, user_id)
    records = await retrieve_query(store, query)
    primary_key, secondary_key = _lookup_keys(config, "subscription_lookup")
    return group_by_parent(records, primary_key, secondary_key)


async def fetch_notifications(store: RecordStore, config: BoardViewConfig, user_id: str) -> dict[Any, list[Record]]:
    query = side_query(config.notification_entity, config.side_owner_field, config.side_order_field, user_id)
    records = [parse_notification(r) for r in await retrieve_query(store, query)]
    primary_key, secondary_key = _lookup_keys(config, "notification_lookup")
    logger.debug("grouped %d notification(s)", len(records))
    return group_by_parent(records, primary_key, secondary_key)


async def _apply(change: Awaitable[_T], entity: str, description: str) -> _T:
    try:
        return await change
    except BoardError:
        raise
    except Exception as exc:
        raise RetrievalFailedError(f"{description} failed: {exc}", entity=entity) from exc


async def subscribe(
    store: RecordStore,
    config: BoardViewConfig,
    entity_config: BoardEntity,
    record_id: str,
    user_id: str,
    email_notifications: bool = False,
) -> str:
    """Create a subscription of ``user_id`` to a board record and return its id.

    The record is bound through the entity's ``subscription_lookup``. With
    ``email_notifications`` the entity's email sender, if configured, is stored
    as JSON.
    """
    lookup = lookup_value_field(entity_config.subscription_lookup)
    if lookup is None:
        raise ActionNotAllowedError(f"{entity_config.logical_name} has no subscription lookup")

    sender = entity_config.email_notifications_sender
    values: dict[str, Any] = {
        lookup: record_id.strip("{}"),
        config.side_owner_field: user_id,
        config.side_order_field: datetime.now(timezone.utc).isoformat(),
        EMAIL_ENABLED_FIELD: email_notifications,
        EMAIL_SENDER_FIELD: json.dumps(sender) if email_notifications and sender is not None else None,
    }
    subscription_id = await _apply(
        store.create_record(config.subscription_entity, config.subscription_id_field, values),
        config.subscription_entity,
        f"Subscribing to {entity_config.logical_name} {record_id}",
    )
    logger.info("subscribed %s to %s %s", user_id, entity_config.logical_name, record_id)
    return subscription_id


async def unsubscribe(
    store: RecordStore,
    config: BoardViewConfig,
    entity_config: BoardEntity,
    record_id: str,
    user_id: str,
) -> int:
    """Delete the user's subscriptions bound to a board record; returns how many were deleted."""
    lookup = lookup_value_field(entity_config.subscription_lookup)
    if lookup is None:
        raise ActionNotAllowedError(f"{entity_config.logical_name} has no subscription lookup")

    query = side_query(config.subscription_entity, config.side_owner_field, config.side_order_field, user_id)
    target = record_id.strip("{}")
    matching = [r for r in await retrieve_query(store, query) if str(r.get(lookup)) == target]
    id_field = config.subscription_id_field
    for subscription in matching:
        await _apply(
            store.delete_record(config.subscription_entity, id_field, str(subscription[id_field])),
            config.subscription_entity,
            f"Unsubscribing from {entity_config.logical_name} {record_id}",
        )
    logger.info("removed %d subscription(s) to %s %s", len(matching), entity_config.logical_name, record_id)
    return len(matching)


async def clear_notifications(
    store: RecordStore,
    config: BoardViewConfig,
    user_id: str,
    parent_id: str | None = None,
    notification_ids: Sequence[str] | None = None,
) -> int:
    """Mark the user's notifications read by deleting them; returns how many were deleted.

    ``parent_id`` selects the notifications of one board record, ``notification_ids``
    selects notifications directly. Without either, every notification of the user
    is cleared.
    """
    query = side_query(config.notification_entity, config.side_owner_field, config.side_order_field, user_id)
    records = await retrieve_query(store, query)

    id_field = config.notification_id_field
    if parent_id is not None:
        primary_key, secondary_key = _lookup_keys(config, "notification_lookup")
        records = group_by_parent(records, primary_key, secondary_key).get(parent_id.strip("{}"), [])
    if notification_ids is not None:
        wanted = set(notification_ids)
        records = [r for r in records if str(r.get(id_field)) in wanted]

    for notification in records:
        await _apply(
            store.delete_record(config.notification_entity, id_field, str(notification[id_field])),
            config.notification_entity,
            f"Clearing notification {notification[id_field]}",
        )
    logger.info("cleared %d notification(s) of %s", len(records), user_id)
    return len(records)
