from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from kanban_board.errors import OptionMismatch

Record = dict[str, Any]

FALLBACK_LANE_LABEL = "None"
FALLBACK_LANE_COLOR = "#777"


# ---------------------------------------------------------------------------
# Query documents
# ---------------------------------------------------------------------------


class Condition(BaseModel):
    model_config = ConfigDict(frozen=True)

    attribute: str
    operator: str = "eq"
    value: str | None = None
    values: list[str] = []


class Filter(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str = "and"
    conditions: list[Condition] = []
    filters: list[Filter] = []


class Order(BaseModel):
    model_config = ConfigDict(frozen=True)

    attribute: str
    descending: bool = False


class LinkEntity(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    from_attribute: str | None = None
    to_attribute: str | None = None
    alias: str | None = None
    link_type: str = "inner"
    attributes: list[str] = []
    all_attributes: bool = False
    filters: list[Filter] = []
    link_entities: list[LinkEntity] = []


class QueryDocument(BaseModel):
    """Structured form of a FetchXML query.

    ``attributes`` empty together with ``all_attributes`` false means the
    store decides the projection (every column for the bundled stores).
    ``options`` carries root attributes of the fetch element that the
    pipeline does not interpret (``mapping``, ``version``, ``distinct`` ...).
    """

    model_config = ConfigDict(frozen=True)

    entity: str
    attributes: list[str] = []
    all_attributes: bool = False
    filters: list[Filter] = []
    orders: list[Order] = []
    link_entities: list[LinkEntity] = []
    no_lock: bool = False
    options: dict[str, str] = {}


Filter.model_rebuild()
LinkEntity.model_rebuild()


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


class AttributeKind(str, Enum):
    CATEGORICAL = "categorical"
    BOOLEAN = "boolean"


class CategoricalOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: int | bool
    label: str
    color: str = FALLBACK_LANE_COLOR
    sort_rank: int = 0
    state: int | None = None


class LaneAttribute(BaseModel):
    """Option definitions of the attribute a board is laned by."""

    logical_name: str
    kind: AttributeKind = AttributeKind.CATEGORICAL
    options: list[CategoricalOption] = []
    false_option: CategoricalOption | None = None
    true_option: CategoricalOption | None = None

    def ordered_options(self) -> list[CategoricalOption]:
        if self.kind is AttributeKind.BOOLEAN:
            false_option = self.false_option or CategoricalOption(value=False, label="No")
            true_option = self.true_option or CategoricalOption(value=True, label="Yes", sort_rank=1)
            return [false_option, true_option]
        return sorted(self.options, key=lambda o: o.sort_rank)


class AttributeMetadata(BaseModel):
    logical_name: str
    attribute_type: str = "String"


class EntityMetadata(BaseModel):
    logical_name: str
    primary_id_attribute: str
    primary_name_attribute: str
    attributes: list[AttributeMetadata] = []

    @property
    def owner_attribute(self) -> str | None:
        for attribute in self.attributes:
            if attribute.logical_name.lower() == "ownerid":
                return attribute.logical_name
        return None


# ---------------------------------------------------------------------------
# Forms
# ---------------------------------------------------------------------------


class FormRow(BaseModel):
    cells: list[str] = []


class FormSegment(BaseModel):
    rows: list[FormRow] = []

    def fields(self) -> list[str]:
        return [cell for row in self.rows for cell in row.cells]


class CardForm(BaseModel):
    name: str = ""
    header: FormSegment = FormSegment()
    body: FormSegment = FormSegment()
    footer: FormSegment = FormSegment()

    def fields(self) -> list[str]:
        """Return header, body and footer fields in order, without duplicates."""
        return list(dict.fromkeys([*self.header.fields(), *self.body.fields(), *self.footer.fields()]))


class SavedView(BaseModel):
    id: str
    name: str
    fetch_xml: str | None = None


# ---------------------------------------------------------------------------
# Board output
# ---------------------------------------------------------------------------


@dataclass
class Lane:
    option: CategoricalOption | None
    data: list[Record] = field(default_factory=list)

    @property
    def label(self) -> str:
        return self.option.label if self.option is not None else FALLBACK_LANE_LABEL

    @property
    def color(self) -> str:
        return self.option.color if self.option is not None else FALLBACK_LANE_COLOR

    @property
    def value(self) -> int | bool | None:
        return self.option.value if self.option is not None else None


@dataclass(frozen=True)
class BoardState:
    primary_lanes: list[Lane]
    secondary_lanes: list[Lane] = field(default_factory=list)
    subscriptions_by_parent: dict[Any, list[Record]] = field(default_factory=dict)
    notifications_by_parent: dict[Any, list[Record]] = field(default_factory=dict)
    diagnostics: list[OptionMismatch] = field(default_factory=list)
    cycle: int = 0
