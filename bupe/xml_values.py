"""Schema-less folding of XPath results into plain Python values.

The package document is queried with XPath and every result set goes through
:func:`reduce_nodes`, which turns it into one of three shapes:

* ``None`` when nothing matched (or the match carries no text),
* a ``str`` for a single element, text or attribute node,
* a ``list`` with one entry per matched element when several matched.

An element's value is the concatenation of its text fragments and of the
values of its nested elements, so ``<dc:title>A <i>B</i></dc:title>`` reduces
to ``"A B"``. Comments and processing instructions contribute nothing.
"""

from __future__ import annotations

import enum
from typing import Iterable, Optional, Union

from lxml import etree as LXML_ET

XmlValue = Union[None, str, list]


class NodeKind(enum.Enum):
    ELEMENT = "element"
    TEXT = "text"
    COMMENT = "comment"
    ATTRIBUTE = "attribute"
    OTHER = "other"


def node_kind(node: object) -> NodeKind:
    if isinstance(node, LXML_ET._Comment):
        return NodeKind.COMMENT
    # Comments, PIs and entities are _Element subclasses in lxml.
    if isinstance(node, (LXML_ET._ProcessingInstruction, LXML_ET._Entity)):
        return NodeKind.OTHER
    if isinstance(node, LXML_ET._Element):
        return NodeKind.ELEMENT
    if isinstance(node, str):
        if getattr(node, "is_attribute", False):
            return NodeKind.ATTRIBUTE
        return NodeKind.TEXT
    return NodeKind.OTHER


def tag_local_name(tag: object) -> str:
    if not tag or not isinstance(tag, str):
        return ""
    if "}" in tag:
        return tag.split("}", 1)[1]
    if ":" in tag:
        return tag.rsplit(":", 1)[1]
    return tag


def _child_nodes(element: LXML_ET._Element) -> list:
    return element.xpath("node()")


def _flatten_text(value: XmlValue) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return "".join(_flatten_text(item) for item in value)
    return value


def _element_value(element: LXML_ET._Element) -> Optional[str]:
    parts: list[str] = []
    contributed = False
    for child in _child_nodes(element):
        kind = node_kind(child)
        if kind is NodeKind.TEXT:
            parts.append(str(child))
            contributed = True
        elif kind is NodeKind.ELEMENT:
            nested = _element_value(child)
            if nested is not None:
                parts.append(nested)
                contributed = True
    if not contributed:
        return None
    return "".join(parts)


def _single_value(node: object) -> Optional[str]:
    kind = node_kind(node)
    if kind is NodeKind.ELEMENT:
        return _element_value(node)
    if kind in (NodeKind.TEXT, NodeKind.ATTRIBUTE):
        return str(node)
    return None


def reduce_nodes(nodes: Union[None, object, Iterable[object]]) -> XmlValue:
    """Reduce an XPath result to ``None``, a string or a list of values.

    ``nodes`` is whatever ``_Element.xpath`` returned: a list of nodes, or a
    bare string/number for XPath expressions that evaluate to a scalar.
    Unknown objects fall through to ``None`` instead of raising.
    """
    if nodes is None:
        return None
    if isinstance(nodes, (str, LXML_ET._Element)):
        return _single_value(nodes)
    if isinstance(nodes, (bool, int, float)):
        return None
    try:
        matched = list(nodes)
    except TypeError:
        return None

    kept = [node for node in matched if node_kind(node) in (NodeKind.ELEMENT, NodeKind.TEXT, NodeKind.ATTRIBUTE)]
    if not kept:
        return None
    if len(kept) == 1:
        return _single_value(kept[0])
    return [_single_value(node) for node in kept]


def text_value(nodes: Union[None, object, Iterable[object]]) -> Optional[str]:
    value = reduce_nodes(nodes)
    if isinstance(value, list):
        flat = _flatten_text(value)
        return flat or None
    return value


def identifier_key(element: LXML_ET._Element) -> Optional[str]:
    scheme_key: Optional[str] = None
    for name, value in element.attrib.items():
        local = tag_local_name(name)
        if local == "id":
            return str(value)
        if scheme_key is None and local.endswith("scheme"):
            scheme_key = str(value)
    return scheme_key


def build_identifier_map(elements: Iterable[object]) -> Optional[dict[str, XmlValue]]:
    """Map ``dc:identifier`` elements by their ``id`` or ``scheme`` attribute.

    ``id`` wins over ``scheme``. Elements carrying neither are skipped.
    Returns ``None`` for an empty input.
    """
    matched = [element for element in elements if node_kind(element) is NodeKind.ELEMENT]
    if not matched:
        return None
    mapping: dict[str, XmlValue] = {}
    for element in matched:
        key = identifier_key(element)
        if key is None:
            continue
        mapping[key] = reduce_nodes([element])
    return mapping
