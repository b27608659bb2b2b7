import logging
from typing import Any

from kanban_board.config import BoardEntity
from kanban_board.core.ports.record_store import RecordStore
from kanban_board.errors import BoardError, RetrievalFailedError, TransitionNotAllowedError
from kanban_board.models import CategoricalOption, LaneAttribute

logger = logging.getLogger(__name__)

STATUS_ATTRIBUTE = "statuscode"
STATE_ATTRIBUTE = "statecode"


def build_transition_update(lane_attribute: LaneAttribute, target: CategoricalOption) -> dict[str, Any]:
    """Return the field changes that move a record into ``target``'s lane.

    Status reasons imply a record state, so moving by ``statuscode`` also sets ``statecode``.
    """
    update: dict[str, Any] = {lane_attribute.logical_name: target.value}
    if lane_attribute.logical_name == STATUS_ATTRIBUTE:
        update[STATE_ATTRIBUTE] = target.state
    return update


async def move_record(
    store: RecordStore,
    entity_config: BoardEntity,
    id_field: str,
    record_id: str,
    lane_attribute: LaneAttribute,
    target: CategoricalOption | None,
) -> dict[str, Any]:
    """Move the record whose ``id_field`` is ``record_id`` into the lane of ``target``.

    Returns the applied changes.
    """
    if entity_config.prevent_transitions:
        raise TransitionNotAllowedError(f"Transitions are disabled for {entity_config.logical_name}")
    if target is None:
        raise TransitionNotAllowedError("Records cannot be moved into the lane for missing values")

    update = build_transition_update(lane_attribute, target)
    try:
        await store.update_record(entity_config.logical_name, id_field, record_id, update)
    except BoardError:
        raise
    except Exception as exc:
        raise RetrievalFailedError(
            f"Updating {entity_config.logical_name} {record_id} failed: {exc}", entity=entity_config.logical_name
        ) from exc
    logger.info("moved %s %s to lane %r", entity_config.logical_name, record_id, target.label)
    return update


def find_option(lane_attribute: LaneAttribute, value: Any) -> CategoricalOption | None:
    for option in lane_attribute.ordered_options():
        if option.value == value and isinstance(option.value, bool) == isinstance(value, bool):
            return option
    return None
