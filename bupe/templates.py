from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import posixpath
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from .models import DC_FIELDS, Config, as_list

EPUB_TEMPLATES_DIR = Path(__file__).resolve().parent / "epub_templates"
ASSETS_DIR = EPUB_TEMPLATES_DIR / "assets"
CONTENT_DIR = "content"
ASSETS_SUBDIR = "content/assets"


@dataclass(frozen=True)
class ManifestItem:
    item_id: str
    href: str
    media_type: str
    properties: str = ""


@dataclass(frozen=True)
class SpineRef:
    idref: str
    linear: bool = True


@dataclass(frozen=True)
class StaticAsset:
    source: Path
    target: str


STATIC_ASSETS = (
    StaticAsset(ASSETS_DIR / "stylesheet.css", "OEBPS/css/stylesheet.css"),
    StaticAsset(ASSETS_DIR / "container.xml", "META-INF/container.xml"),
    StaticAsset(ASSETS_DIR / "com.apple.ibooks.display-options.xml", "META-INF/com.apple.ibooks.display-options.xml"),
)


def basename(path: str) -> str:
    return posixpath.basename((path or "").replace("\\", "/"))


def content_href(path: str) -> str:
    raw, _, fragment = (path or "").partition("#")
    href = f"{CONTENT_DIR}/{basename(raw)}"
    return f"{href}#{fragment}" if fragment else href


def asset_href(path: str) -> str:
    return f"{ASSETS_SUBDIR}/{basename(path)}"


@lru_cache(maxsize=1)
def _epub_template_env() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(EPUB_TEMPLATES_DIR)),
        autoescape=select_autoescape(
            enabled_extensions=("xml", "xhtml", "html", "opf", "ncx", "j2"),
            default_for_string=False,
        ),
        trim_blocks=True,
        lstrip_blocks=True,
        undefined=StrictUndefined,
    )
    env.filters["as_list"] = as_list
    env.filters["content_href"] = content_href
    return env


def _render_epub_template(template_name: str, **context: object) -> str:
    return _epub_template_env().get_template(template_name).render(**context)


def _first(value: object) -> str:
    values = as_list(value)
    return str(values[0]) if values else ""


def _identifiers(config: Config) -> list[tuple[str, str]]:
    if isinstance(config.identifier, dict):
        pairs = [(str(key), str(value)) for key, value in config.identifier.items() if value is not None]
        if any(key == config.unique_identifier for key, _ in pairs):
            return pairs
        return [(config.unique_identifier or "", pairs[0][1]), *pairs[1:]] if pairs else []
    return [(config.unique_identifier or "", str(config.identifier or ""))]


def _uid(config: Config) -> str:
    for key, value in _identifiers(config):
        if key == config.unique_identifier:
            return value
    return ""


def render_package(
    config: Config,
    manifest: list[ManifestItem],
    spine: list[SpineRef],
    cover_image_id: Optional[str] = None,
) -> str:
    return _render_epub_template(
        "content.opf.j2",
        config=config,
        language=_first(config.language),
        identifiers=_identifiers(config),
        dc_fields=[name for name in DC_FIELDS if name not in {"title", "language"}],
        manifest=manifest,
        spine=spine,
        cover_image_id=cover_image_id,
    )


def render_ncx(config: Config) -> str:
    return _render_epub_template(
        "toc.ncx.j2",
        config=config,
        language=_first(config.language),
        title=_first(config.title),
        uid=_uid(config),
    )


def render_nav(config: Config) -> str:
    return _render_epub_template(
        "nav.xhtml.j2",
        config=config,
        language=_first(config.language),
        title=_first(config.title),
    )


def render_title(config: Config) -> str:
    return _render_epub_template(
        "title.xhtml.j2",
        config=config,
        language=_first(config.language),
        title=_first(config.title),
        logo_href=asset_href(config.logo) if config.logo else None,
    )


def static_assets() -> tuple[StaticAsset, ...]:
    return STATIC_ASSETS
