"""Preparation of the query documents a board fetch executes.

A base query (FetchXML text or an already parsed ``QueryDocument``) is rewritten
so that it requests exactly the attributes a card needs, always carries the
no-lock hint, and optionally receives one additional filter condition. ``in``
conditions are capped at ``MAX_IN_FILTER_SIZE`` values per document; longer
value lists are spread over sibling documents that must all be executed.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from kanban_board.core.fetchxml import parse_fetch_xml
from kanban_board.models import CardForm, Condition, EntityMetadata, Filter, LinkEntity, QueryDocument

MAX_IN_FILTER_SIZE = 500

# Identifier that matches no record; keeps an ``in`` filter well-formed when there is nothing to match.
EMPTY_ID = "00000000-0000-0000-0000-000000000000"


@dataclass(frozen=True)
class AdditionalCondition:
    attribute: str
    operator: str
    values: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class QueryOptions:
    additional_fields: list[str] = field(default_factory=list)
    hide_empty_lanes: bool = False
    additional_condition: AdditionalCondition | None = None


def required_fields(
    form_fields: Sequence[str],
    lane_source: str,
    primary_id_field: str,
    primary_name_field: str,
    owner_field: str | None = None,
    additional_fields: Sequence[str] = (),
) -> list[str]:
    """Return the attribute list a card needs, primary id first, without duplicates."""
    fields = [primary_id_field, *form_fields, lane_source, primary_name_field]
    if owner_field:
        fields.append(owner_field)
    fields.extend(additional_fields)
    return list(dict.fromkeys(f for f in fields if f))


def _strip_link_attributes(link: LinkEntity) -> LinkEntity:
    return link.model_copy(
        update={
            "attributes": [],
            "all_attributes": False,
            "link_entities": [_strip_link_attributes(nested) for nested in link.link_entities],
        }
    )


def _condition_for(additional: AdditionalCondition, values: list[str]) -> Condition:
    if additional.operator.lower() == "in":
        return Condition(attribute=additional.attribute, operator=additional.operator, values=values)
    return Condition(
        attribute=additional.attribute,
        operator=additional.operator,
        value=values[0] if values else None,
    )


def _value_batches(additional: AdditionalCondition) -> list[list[str]]:
    if additional.operator.lower() != "in" or len(additional.values) <= MAX_IN_FILTER_SIZE:
        return [list(additional.values)]
    return [
        list(additional.values[start : start + MAX_IN_FILTER_SIZE])
        for start in range(0, len(additional.values), MAX_IN_FILTER_SIZE)
    ]


def _base_document(base_query: str | QueryDocument | None, entity_name: str) -> QueryDocument:
    if isinstance(base_query, QueryDocument):
        return base_query
    if base_query is None or not base_query.strip():
        return QueryDocument(entity=entity_name, no_lock=True)
    return parse_fetch_xml(base_query)


def prepare_queries(
    base_query: str | QueryDocument | None,
    entity_name: str,
    lane_source: str,
    form_fields: Sequence[str],
    primary_id_field: str,
    primary_name_field: str,
    owner_field: str | None = None,
    options: QueryOptions | None = None,
) -> list[QueryDocument]:
    """Build the query documents for one board fetch.

    Returns one document, or one per ``MAX_IN_FILTER_SIZE`` values when the
    additional condition is an ``in`` list that overflows. Raises
    ``QueryMalformedError`` when ``base_query`` text cannot be parsed.
    """
    options = options or QueryOptions()
    base = _base_document(base_query, entity_name)

    attributes = required_fields(
        form_fields,
        lane_source,
        primary_id_field,
        primary_name_field,
        owner_field,
        options.additional_fields,
    )
    prepared = base.model_copy(
        update={
            "attributes": attributes,
            "all_attributes": False,
            "link_entities": [_strip_link_attributes(link) for link in base.link_entities],
            "no_lock": True,
        }
    )

    additional = options.additional_condition
    if additional is None:
        return [prepared]

    return [
        prepared.model_copy(
            update={"filters": [*prepared.filters, Filter(conditions=[_condition_for(additional, batch)])]}
        )
        for batch in _value_batches(additional)
    ]


def prepare_entity_queries(
    base_query: str | QueryDocument | None,
    lane_source: str,
    form: CardForm,
    metadata: EntityMetadata,
    options: QueryOptions | None = None,
) -> list[QueryDocument]:
    return prepare_queries(
        base_query,
        metadata.logical_name,
        lane_source,
        form.fields(),
        metadata.primary_id_attribute,
        metadata.primary_name_attribute,
        metadata.owner_attribute,
        options,
    )


def id_filter(attribute: str, ids: Sequence[str]) -> AdditionalCondition:
    """Return ``attribute in ids``, falling back to ``EMPTY_ID`` when ``ids`` is empty."""
    return AdditionalCondition(attribute=attribute, operator="in", values=list(ids) if ids else [EMPTY_ID])
