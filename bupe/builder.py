"""EPUB generator.

Example::

    config = Config(
        title="Sample",
        language="en",
        creator="John Doe",
        unique_identifier="EXAMPLE",
        identifier="http://example.com/book/jdoe/1",
        pages=["bacon.xhtml", "egg.xhtml", "ham.xhtml"],
        nav=[
            NavItem(id="ode-to-bacon", label="1. Ode to Bacon", content="bacon.xhtml"),
            NavItem(id="ode-to-egg", label="2. Ode to Egg", content="egg.xhtml"),
            NavItem(id="ode-to-ham", label="3. Ode to Ham", content="ham.xhtml"),
        ],
    )
    build(config, "example.epub")
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, replace
import logging
import os
from pathlib import Path
import shutil
import tempfile
from typing import Iterable, Optional, Union
import uuid

from .archive import write_archive
from .errors import InvalidExtensionName, InvalidMediaType, InvalidVersion
from .models import Config
from .templates import (
    ASSETS_SUBDIR,
    CONTENT_DIR,
    ManifestItem,
    SpineRef,
    asset_href,
    basename,
    content_href,
    render_nav,
    render_ncx,
    render_package,
    render_title,
    static_assets,
)

logger = logging.getLogger("bupe.builder")

UNIQUE_IDENTIFIER_FALLBACK = "BUPE"
STAGING_DIRNAME = ".bupe"
RESERVED_MANIFEST_IDS = ("ncx", "nav", "cover", "stylesheet", "cover-image")
PAGE_EXTENSIONS = {
    "3.0": (".xhtml",),
    "2.0": (".html", ".htm", ".xhtml"),
}
MEDIA_TYPES = {
    ".gif": "image/gif",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".svg": "image/svg+xml",
    ".xhtml": "application/xhtml+xml",
    ".html": "application/xhtml+xml",
    ".htm": "application/xhtml+xml",
    ".js": "text/javascript",
    ".css": "text/css",
    ".ncx": "application/x-dtbncx+xml",
}


@dataclass(frozen=True)
class _PackagePlan:
    manifest: list[ManifestItem]
    spine: list[SpineRef]
    cover_image_id: Optional[str]


def uuid4() -> str:
    return str(uuid.uuid4())


def media_type(path: str) -> str:
    raw = (path or "").split("#", 1)[0]
    suffix = os.path.splitext(raw)[1].lower()
    try:
        return MEDIA_TYPES[suffix]
    except KeyError:
        raise InvalidMediaType(path) from None


def _utc_now() -> str:
    return dt.datetime.now(dt.timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _modified_date(config: Config) -> Config:
    # Caller supplied timestamps are kept as given.
    if config.modified is None:
        return replace(config, modified=_utc_now())
    return config


def _check_identifier(config: Config) -> Config:
    if not config.identifier:
        return replace(config, identifier=f"urn:uuid:{uuid4()}")
    return config


def _invalid_files(files: Iterable[str], extensions: tuple[str, ...]) -> list[str]:
    return [name for name in files if os.path.splitext(name)[1].lower() not in extensions]


def _check_files_extension(config: Config) -> Config:
    extensions = PAGE_EXTENSIONS.get(config.version)
    if extensions is None:
        raise InvalidVersion(config.version)
    invalid = _invalid_files(config.pages or [], extensions)
    if invalid:
        if config.version == "3.0":
            raise InvalidExtensionName(
                f"XHTML Content Document file names should have the extension '.xhtml': {invalid}"
            )
        raise InvalidExtensionName(
            f"invalid file extension for HTML file, expected '.html', '.htm' or '.xhtml': {invalid}"
        )
    return config


def _check_unique_identifier(config: Config) -> Config:
    if not config.unique_identifier:
        return replace(config, unique_identifier=UNIQUE_IDENTIFIER_FALLBACK)
    return config


def normalize_config(config: Config) -> Config:
    """Fill defaults and validate; returns a new config, ``config`` is left alone."""
    config = replace(config, pages=list(config.pages or []), nav=list(config.nav or []))
    config = _modified_date(config)
    config = _check_identifier(config)
    config = _check_files_extension(config)
    return _check_unique_identifier(config)


def _unique_id(candidate: str, taken: set[str]) -> str:
    item_id = candidate
    suffix = 2
    while item_id in taken:
        item_id = f"{candidate}-{suffix}"
        suffix += 1
    taken.add(item_id)
    if item_id != candidate:
        logger.warning("manifest id %r is already in use, renamed to %r", candidate, item_id)
    return item_id


def _plan_package(config: Config) -> _PackagePlan:
    # Fixed ids are reserved even when their item is absent from this package.
    taken = set(RESERVED_MANIFEST_IDS)
    manifest = [ManifestItem("ncx", "toc.ncx", media_type("toc.ncx"))]
    spine: list[SpineRef] = []
    if config.version == "3.0":
        manifest.append(ManifestItem("nav", "nav.xhtml", "application/xhtml+xml", "nav"))
    if config.cover:
        manifest.append(ManifestItem("cover", "title.xhtml", "application/xhtml+xml"))
        spine.append(SpineRef("cover", linear=False))
    manifest.append(ManifestItem("stylesheet", "css/stylesheet.css", "text/css"))

    seen_hrefs: set[str] = set()
    for item in config.nav:
        href = content_href(item.content).split("#", 1)[0]
        if href in seen_hrefs:
            continue
        seen_hrefs.add(href)
        item_id = _unique_id(item.id, taken)
        manifest.append(ManifestItem(item_id, href, media_type(item.content)))
        spine.append(SpineRef(item_id))
    for index, page in enumerate(config.pages, start=1):
        href = content_href(page)
        if href in seen_hrefs:
            continue
        seen_hrefs.add(href)
        item_id = _unique_id(f"page-{index}", taken)
        manifest.append(ManifestItem(item_id, href, media_type(page)))
        spine.append(SpineRef(item_id))

    for prefix, files in (("css", config.styles), ("js", config.scripts), ("img", config.images)):
        for index, path in enumerate(files, start=1):
            manifest.append(ManifestItem(_unique_id(f"{prefix}-{index}", taken), asset_href(path), media_type(path)))

    cover_image_id: Optional[str] = None
    if config.logo:
        cover_image_id = "cover-image"
        properties = "cover-image" if config.version == "3.0" else ""
        manifest.append(ManifestItem(cover_image_id, asset_href(config.logo), media_type(config.logo), properties))
    return _PackagePlan(manifest=manifest, spine=spine, cover_image_id=cover_image_id)


def _generate_tmp_dir(config: Config) -> Path:
    base = config.extras.get("tmp_dir") or tempfile.gettempdir()
    tmp_dir = Path(base) / STAGING_DIRNAME / uuid4()
    if tmp_dir.exists():
        shutil.rmtree(tmp_dir)
    return tmp_dir


def _write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _generate_assets(output: Path) -> None:
    for asset in static_assets():
        target = output / asset.target
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(asset.source, target)


def _copy_files(files: Iterable[str], output: Path) -> None:
    output.mkdir(parents=True, exist_ok=True)
    for name in files:
        # Same basename from different directories: last one wins.
        shutil.copyfile(name, output / basename(name))


def _custom_assets(config: Config) -> list[str]:
    files = [*config.styles, *config.scripts, *config.images]
    if config.logo and config.logo not in files:
        files.append(config.logo)
    return files


def _stage(config: Config, plan: _PackagePlan, tmp_dir: Path) -> None:
    oebps = tmp_dir / "OEBPS"
    oebps.mkdir(parents=True, exist_ok=True)
    _generate_assets(tmp_dir)

    _write_text(oebps / "content.opf", render_package(config, plan.manifest, plan.spine, plan.cover_image_id))
    _write_text(oebps / "toc.ncx", render_ncx(config))
    # EPUB 2 has no navigation document.
    if config.version == "3.0":
        _write_text(oebps / "nav.xhtml", render_nav(config))
    if config.cover:
        _write_text(oebps / "title.xhtml", render_title(config))

    _copy_files(config.pages, oebps / CONTENT_DIR)
    _copy_files(_custom_assets(config), oebps / ASSETS_SUBDIR)
    logger.debug("staged %s", tmp_dir)


def build(config: Config, output: Union[str, os.PathLike]) -> Path:
    """Generate an EPUB file at ``output`` and return its absolute path."""
    output_path = Path(output).expanduser().resolve()
    config = normalize_config(config)
    plan = _plan_package(config)

    if output_path.exists():
        output_path.unlink()

    tmp_dir = _generate_tmp_dir(config)
    logger.info("building %s (EPUB %s)", output_path, config.version)
    try:
        _stage(config, plan, tmp_dir)
        write_archive(tmp_dir, output_path)
    finally:
        shutil.rmtree(tmp_dir, ignore_errors=True)
    logger.info("built %s", output_path)
    return output_path
