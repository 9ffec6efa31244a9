"""EPUB 3 parser, also accepting EPUB 2 packages.

Example::

    parse("sample.epub")
    # Config(title="Sample", creator="John Doe", unique_identifier="EXAMPLE", ...)
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
import posixpath
from pathlib import PurePosixPath
from typing import Optional, Union
import zipfile

from lxml import etree as LXML_ET

from .archive import extract_entries, locate_root_document, open_archive, validate_mimetype
from .errors import CorruptArchive
from .models import DC_FIELDS, Config, NavItem
from .xml_values import XmlValue, build_identifier_map, identifier_key, reduce_nodes, tag_local_name, text_value

logger = logging.getLogger("bupe.parser")

METADATA_XPATH = "/*[local-name()='package']/*[local-name()='metadata']"
NCX_MEDIA_TYPE = "application/x-dtbncx+xml"
DOCUMENT_MEDIA_TYPES = {"application/xhtml+xml", "text/html"}


@dataclass
class _ManifestEntry:
    item_id: str
    href: str
    media_type: str
    properties: set[str]


def _xml_root_from_bytes(raw: bytes) -> LXML_ET._Element:
    parser = LXML_ET.XMLParser(resolve_entities=False, no_network=True, recover=True)
    root = LXML_ET.fromstring(raw, parser=parser)
    if root is None:
        raise ValueError("document has no root element")
    return root


def _find_metadata(root: LXML_ET._Element, name: str) -> XmlValue:
    return reduce_nodes(root.xpath(f"{METADATA_XPATH}/*[local-name()='{name}']"))


def _find_attribute(root: LXML_ET._Element, xpath: str) -> Optional[str]:
    value = reduce_nodes(root.xpath(xpath))
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _find_language(root: LXML_ET._Element) -> XmlValue:
    return _find_metadata(root, "language") or _find_attribute(root, "/*[local-name()='package']/@xml:lang")


def _find_modified(root: LXML_ET._Element) -> XmlValue:
    modified = reduce_nodes(
        root.xpath(f"{METADATA_XPATH}/*[local-name()='meta'][contains(@property, 'dcterms:modified')]")
    )
    if modified is not None:
        return modified
    return _find_attribute(root, f"{METADATA_XPATH}/*[local-name()='meta'][@name='dcterms:modified']/@content")


def _find_identifiers(root: LXML_ET._Element, unique_identifier: Optional[str]) -> Union[None, str, dict]:
    elements = root.xpath(f"{METADATA_XPATH}/*[local-name()='identifier']")
    # A lone identifier is a plain string unless it is qualified by something
    # other than the package's unique-identifier.
    if len(elements) == 1 and identifier_key(elements[0]) in {None, unique_identifier}:
        value = reduce_nodes(elements)
        return value if not isinstance(value, list) else None
    return build_identifier_map(elements)


def _resolve_href(base_member: str, href: str) -> str:
    raw = (href or "").split("#", 1)[0].strip()
    if not raw:
        return ""
    base_dir = PurePosixPath(base_member).parent.as_posix()
    joined = posixpath.join(base_dir, raw) if base_dir not in {"", "."} else raw
    return posixpath.normpath(joined)


def _relative_to_package(opf_path: str, member: str) -> str:
    opf_dir = PurePosixPath(opf_path).parent.as_posix()
    if not member or opf_dir in {"", "."}:
        return member
    return posixpath.relpath(member, start=opf_dir)


def _manifest(root: LXML_ET._Element) -> list[_ManifestEntry]:
    entries: list[_ManifestEntry] = []
    for node in root.xpath("/*[local-name()='package']/*[local-name()='manifest']/*[local-name()='item']"):
        entries.append(
            _ManifestEntry(
                item_id=str(node.get("id") or "").strip(),
                href=str(node.get("href") or "").strip(),
                media_type=str(node.get("media-type") or "").strip().lower(),
                properties={part for part in str(node.get("properties") or "").split() if part},
            )
        )
    return entries


def _find_pages(root: LXML_ET._Element, by_id: dict[str, _ManifestEntry]) -> list[str]:
    pages: list[str] = []
    for itemref in root.xpath("/*[local-name()='package']/*[local-name()='spine']/*[local-name()='itemref']"):
        if str(itemref.get("linear") or "").strip().lower() == "no":
            continue
        entry = by_id.get(str(itemref.get("idref") or "").strip())
        if entry is None or entry.media_type not in DOCUMENT_MEDIA_TYPES or "nav" in entry.properties:
            continue
        pages.append(entry.href)
    return pages


def _nav_from_document(raw: bytes, nav_member: str, opf_path: str) -> list[NavItem]:
    root = _xml_root_from_bytes(raw)
    items: list[NavItem] = []
    for nav in root.xpath(".//*[local-name()='nav']"):
        nav_type = ""
        for key, value in nav.attrib.items():
            if tag_local_name(key) == "type":
                nav_type = str(value or "").strip().lower()
                break
        if nav_type and nav_type != "toc":
            continue
        for link in nav.xpath(".//*[local-name()='a'][@href]"):
            parent = link.getparent()
            item_id = str(parent.get("id") or "") if parent is not None else ""
            items.append(_nav_item(item_id, text_value([link]), link.get("href"), nav_member, opf_path))
    return items


def _nav_from_ncx(raw: bytes, ncx_member: str, opf_path: str) -> list[NavItem]:
    root = _xml_root_from_bytes(raw)
    items: list[NavItem] = []
    for point in root.xpath(".//*[local-name()='navPoint']"):
        label = text_value(point.xpath("./*[local-name()='navLabel']/*[local-name()='text'][1]"))
        src = _find_attribute(point, "./*[local-name()='content']/@src")
        if not src:
            continue
        items.append(_nav_item(str(point.get("id") or ""), label, src, ncx_member, opf_path))
    return items


def _nav_item(item_id: str, label: Optional[str], href: Optional[str], doc_member: str, opf_path: str) -> NavItem:
    raw_href = str(href or "").strip()
    fragment = raw_href.split("#", 1)[1] if "#" in raw_href else ""
    target = _relative_to_package(opf_path, _resolve_href(doc_member, raw_href))
    content = f"{target}#{fragment}" if fragment else target
    return NavItem(id=item_id, label=(label or "").strip(), content=content)


def _find_nav(
    zf: zipfile.ZipFile, opf_path: str, manifest: list[_ManifestEntry]
) -> list[NavItem]:
    nav_entries = [entry for entry in manifest if "nav" in entry.properties]
    ncx_entries = [entry for entry in manifest if entry.media_type == NCX_MEDIA_TYPE]
    for entry in [*nav_entries, *ncx_entries]:
        member = _resolve_href(opf_path, entry.href)
        raw = extract_entries(zf, [member]).get(member)
        if raw is None:
            logger.warning("navigation document %s listed in manifest but missing", member)
            continue
        try:
            if entry.media_type == NCX_MEDIA_TYPE:
                items = _nav_from_ncx(raw, member, opf_path)
            else:
                items = _nav_from_document(raw, member, opf_path)
        except (LXML_ET.XMLSyntaxError, ValueError):
            logger.warning("cannot parse navigation document %s", member, exc_info=True)
            continue
        if items:
            return items
    return []


def _find_cover_image(root: LXML_ET._Element, manifest: list[_ManifestEntry], by_id: dict[str, _ManifestEntry]) -> Optional[str]:
    cover_ref = _find_attribute(root, f"{METADATA_XPATH}/*[local-name()='meta'][@name='cover']/@content")
    if cover_ref and cover_ref in by_id:
        return by_id[cover_ref].href
    for entry in manifest:
        if "cover-image" in entry.properties:
            return entry.href
    return None


def _extract_info(zf: zipfile.ZipFile, opf_path: str) -> Config:
    raw = extract_entries(zf, [opf_path]).get(opf_path)
    if raw is None:
        raise CorruptArchive(f"package document {opf_path!r} is missing from the archive")
    try:
        root = _xml_root_from_bytes(raw)
    except (LXML_ET.XMLSyntaxError, ValueError) as exc:
        raise CorruptArchive(f"cannot parse package document {opf_path!r}: {exc}") from exc

    manifest = _manifest(root)
    by_id = {entry.item_id: entry for entry in manifest if entry.item_id}
    cover_image = _find_cover_image(root, manifest, by_id)
    title_page = by_id.get("cover")

    metadata = {name: _find_metadata(root, name) for name in DC_FIELDS}
    metadata["language"] = _find_language(root)
    unique_identifier = _find_attribute(root, "/*[local-name()='package']/@unique-identifier")
    return Config(
        **metadata,
        version=_find_attribute(root, "/*[local-name()='package']/@version"),
        identifier=_find_identifiers(root, unique_identifier),
        unique_identifier=unique_identifier,
        modified=_find_modified(root),
        pages=_find_pages(root, by_id),
        nav=_find_nav(zf, opf_path, manifest),
        styles=[entry.href for entry in manifest if entry.media_type == "text/css"],
        scripts=[entry.href for entry in manifest if entry.media_type in {"text/javascript", "application/javascript"}],
        images=[entry.href for entry in manifest if entry.media_type.startswith("image/")],
        cover=title_page.href if title_page is not None and title_page.media_type in DOCUMENT_MEDIA_TYPES else None,
        logo=cover_image,
    )


def parse(epub_file: Union[str, os.PathLike]) -> Config:
    """Read the package metadata and reading order of ``epub_file``."""
    with open_archive(epub_file) as zf:
        validate_mimetype(zf)
        opf_path = locate_root_document(zf)
        logger.info("parsing %s (package document %s)", epub_file, opf_path)
        return _extract_info(zf, opf_path)
