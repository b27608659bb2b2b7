"""Conversion between FetchXML text and ``QueryDocument``."""

from __future__ import annotations

import xml.etree.ElementTree as ET

from kanban_board.errors import QueryMalformedError
from kanban_board.models import Condition, Filter, LinkEntity, Order, QueryDocument

_TRUE_VALUES = {"true", "1"}


def _as_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUE_VALUES


def _parse_condition(element: ET.Element) -> Condition:
    attribute = element.get("attribute")
    if not attribute:
        raise QueryMalformedError("condition element without attribute")
    return Condition(
        attribute=attribute,
        operator=element.get("operator", "eq"),
        value=element.get("value"),
        values=[(v.text or "") for v in element.findall("value")],
    )


def _parse_filter(element: ET.Element) -> Filter:
    return Filter(
        type=element.get("type", "and"),
        conditions=[_parse_condition(c) for c in element.findall("condition")],
        filters=[_parse_filter(f) for f in element.findall("filter")],
    )


def _parse_link(element: ET.Element) -> LinkEntity:
    name = element.get("name")
    if not name:
        raise QueryMalformedError("link-entity element without name")
    return LinkEntity(
        name=name,
        from_attribute=element.get("from"),
        to_attribute=element.get("to"),
        alias=element.get("alias"),
        link_type=element.get("link-type", "inner"),
        attributes=[a.get("name", "") for a in element.findall("attribute")],
        all_attributes=element.find("all-attributes") is not None,
        filters=[_parse_filter(f) for f in element.findall("filter")],
        link_entities=[_parse_link(child) for child in element.findall("link-entity")],
    )


def parse_fetch_xml(text: str) -> QueryDocument:
    """Parse FetchXML into a ``QueryDocument``.

    Raises ``QueryMalformedError`` for text that is not well-formed XML or that
    lacks the ``fetch``/``entity`` structure.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise QueryMalformedError(f"Malformed query: {exc}") from exc

    if root.tag != "fetch":
        raise QueryMalformedError(f"Expected <fetch> root element, found <{root.tag}>")
    entity = root.find("entity")
    if entity is None or not entity.get("name"):
        raise QueryMalformedError("Query has no named <entity> element")

    options = {k: v for k, v in root.attrib.items() if k != "no-lock"}
    return QueryDocument(
        entity=entity.get("name", ""),
        attributes=[a.get("name", "") for a in entity.findall("attribute")],
        all_attributes=entity.find("all-attributes") is not None,
        filters=[_parse_filter(f) for f in entity.findall("filter")],
        orders=[
            Order(attribute=o.get("attribute", ""), descending=_as_bool(o.get("descending")))
            for o in entity.findall("order")
        ],
        link_entities=[_parse_link(link) for link in entity.findall("link-entity")],
        no_lock=_as_bool(root.get("no-lock")),
        options=options,
    )


def _append_condition(parent: ET.Element, condition: Condition) -> None:
    element = ET.SubElement(parent, "condition", attribute=condition.attribute, operator=condition.operator)
    if condition.value is not None:
        element.set("value", condition.value)
    for value in condition.values:
        ET.SubElement(element, "value").text = value


def _append_filter(parent: ET.Element, flt: Filter) -> None:
    element = ET.SubElement(parent, "filter", type=flt.type)
    for condition in flt.conditions:
        _append_condition(element, condition)
    for nested in flt.filters:
        _append_filter(element, nested)


def _append_link(parent: ET.Element, link: LinkEntity) -> None:
    element = ET.SubElement(parent, "link-entity", name=link.name)
    if link.from_attribute:
        element.set("from", link.from_attribute)
    if link.to_attribute:
        element.set("to", link.to_attribute)
    if link.alias:
        element.set("alias", link.alias)
    element.set("link-type", link.link_type)
    if link.all_attributes:
        ET.SubElement(element, "all-attributes")
    for name in link.attributes:
        ET.SubElement(element, "attribute", name=name)
    for flt in link.filters:
        _append_filter(element, flt)
    for nested in link.link_entities:
        _append_link(element, nested)


def to_fetch_xml(query: QueryDocument) -> str:
    root = ET.Element("fetch", attrib=dict(query.options))
    if query.no_lock:
        root.set("no-lock", "true")
    entity = ET.SubElement(root, "entity", name=query.entity)
    if query.all_attributes:
        ET.SubElement(entity, "all-attributes")
    for name in query.attributes:
        ET.SubElement(entity, "attribute", name=name)
    for order in query.orders:
        order_element = ET.SubElement(entity, "order", attribute=order.attribute)
        if order.descending:
            order_element.set("descending", "true")
    for link in query.link_entities:
        _append_link(entity, link)
    for flt in query.filters:
        _append_filter(entity, flt)
    return ET.tostring(root, encoding="unicode")
