from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

MetaValue = Union[None, str, list]

DC_FIELDS = (
    "title",
    "language",
    "creator",
    "contributor",
    "date",
    "publisher",
    "description",
    "format",
    "coverage",
    "relation",
    "rights",
    "source",
    "type",
    "subject",
)


@dataclass(frozen=True)
class NavItem:
    id: str
    label: str
    content: str


@dataclass
class Config:
    title: MetaValue = None
    language: MetaValue = None
    identifier: Union[None, str, dict] = None
    unique_identifier: Optional[str] = None
    creator: MetaValue = None
    contributor: MetaValue = None
    date: MetaValue = None
    modified: MetaValue = None
    publisher: MetaValue = None
    description: MetaValue = None
    format: MetaValue = None
    coverage: MetaValue = None
    relation: MetaValue = None
    rights: MetaValue = None
    source: MetaValue = None
    type: MetaValue = None
    subject: MetaValue = None
    version: str = "3.0"
    pages: Optional[list[str]] = field(default_factory=list)
    nav: Optional[list[NavItem]] = field(default_factory=list)
    styles: list[str] = field(default_factory=list)
    scripts: list[str] = field(default_factory=list)
    images: list[str] = field(default_factory=list)
    cover: Union[None, bool, str] = None
    logo: Optional[str] = None
    extras: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.nav:
            self.nav = [nav_item_from_value(item) for item in self.nav]


def nav_item_from_value(value: object) -> NavItem:
    if isinstance(value, NavItem):
        return value
    if isinstance(value, dict):
        return NavItem(
            id=str(value.get("id", "")),
            label=str(value.get("label", "")),
            content=str(value.get("content", "")),
        )
    raise TypeError(f"nav entries must be NavItem or dict, got {type(value).__name__}")


def as_list(value: object) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [item for item in value if item is not None]
    return [value]


def nav_item_to_dict(item: NavItem) -> dict:
    return {"id": item.id, "label": item.label, "content": item.content}


def config_to_dict(config: Config) -> dict:
    data: dict[str, Any] = {name: getattr(config, name) for name in DC_FIELDS}
    data.update(
        {
            "identifier": config.identifier,
            "unique_identifier": config.unique_identifier,
            "modified": config.modified,
            "version": config.version,
            "pages": list(config.pages) if config.pages is not None else None,
            "nav": [nav_item_to_dict(item) for item in config.nav] if config.nav is not None else None,
            "styles": list(config.styles),
            "scripts": list(config.scripts),
            "images": list(config.images),
            "cover": config.cover,
            "logo": config.logo,
            "extras": dict(config.extras),
        }
    )
    return data


def config_from_dict(data: dict) -> Config:
    return Config(
        **{name: data.get(name) for name in DC_FIELDS},
        identifier=data.get("identifier"),
        unique_identifier=data.get("unique_identifier"),
        modified=data.get("modified"),
        version=str(data.get("version") or "3.0"),
        pages=list(data.get("pages") or []),
        nav=[nav_item_from_value(item) for item in data.get("nav") or []],
        styles=list(data.get("styles") or []),
        scripts=list(data.get("scripts") or []),
        images=list(data.get("images") or []),
        cover=data.get("cover"),
        logo=data.get("logo"),
        extras=dict(data.get("extras") or {}),
    )
