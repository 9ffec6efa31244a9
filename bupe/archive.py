from __future__ import annotations

import contextlib
import logging
import os
import re
import tempfile
import zipfile
from pathlib import Path, PurePosixPath
from typing import Iterable, Iterator, Union

from .errors import CorruptArchive, EpubFileNotFound, InvalidExtension, InvalidMimetype, MissingRootfile

logger = logging.getLogger("bupe.archive")

MIMETYPE = b"application/epub+zip"
MIMETYPE_ENTRY = "mimetype"
CONTAINER_ENTRY = "META-INF/container.xml"
COMPRESSED_SUFFIXES = {".css", ".js", ".html", ".htm", ".xhtml", ".ncx", ".opf", ".jpg", ".png", ".svg", ".xml"}
ROOTFILE_RE = re.compile(rb"<rootfile\s[^>]*?full-path=\"(?P<full_path>[^\"]+)\"", re.DOTALL)

PathLike = Union[str, os.PathLike]


@contextlib.contextmanager
def open_archive(path: PathLike) -> Iterator[zipfile.ZipFile]:
    epub_file = Path(path).expanduser()
    if not epub_file.exists():
        raise EpubFileNotFound(epub_file)
    if epub_file.suffix.lower() != ".epub":
        raise InvalidExtension(epub_file)
    try:
        zf = zipfile.ZipFile(epub_file, "r")
    except (zipfile.BadZipFile, OSError) as exc:
        raise CorruptArchive(f"cannot read {epub_file} as a zip archive: {exc}") from exc
    with zf:
        yield zf


def extract_entries(zf: zipfile.ZipFile, names: Iterable[str]) -> dict[str, bytes]:
    """Read the requested members into memory; absent names are left out."""
    wanted = list(names)
    present = set(zf.namelist())
    entries: dict[str, bytes] = {}
    for name in wanted:
        if name not in present:
            continue
        try:
            entries[name] = zf.read(name)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, EOFError) as exc:
            raise CorruptArchive(f"cannot extract {name!r}: {exc}") from exc
    return entries


def validate_mimetype(zf: zipfile.ZipFile) -> None:
    payload = extract_entries(zf, [MIMETYPE_ENTRY]).get(MIMETYPE_ENTRY)
    if payload != MIMETYPE:
        raise InvalidMimetype()


def locate_root_document(zf: zipfile.ZipFile) -> str:
    container = extract_entries(zf, [CONTAINER_ENTRY]).get(CONTAINER_ENTRY)
    if container is None:
        raise MissingRootfile()
    match = ROOTFILE_RE.search(container)
    if not match:
        raise MissingRootfile()
    return match.group("full_path").decode("utf-8")


def _iter_files(source_dir: Path) -> Iterator[Path]:
    for root, dirs, files in os.walk(source_dir):
        dirs.sort()
        for name in sorted(files):
            yield Path(root) / name


def _compress_type(member: str) -> int:
    if PurePosixPath(member).suffix.lower() in COMPRESSED_SUFFIXES:
        return zipfile.ZIP_DEFLATED
    return zipfile.ZIP_STORED


def write_archive(source_dir: PathLike, output_path: PathLike) -> Path:
    """Zip ``source_dir`` into an EPUB container at ``output_path``.

    ``mimetype`` always goes first and uncompressed. A ``mimetype`` file in
    ``source_dir`` is ignored. Files that cannot be read are skipped. The
    archive is written to a temporary sibling and moved into place only once
    complete.
    """
    source = Path(source_dir)
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    tmp_handle = tempfile.NamedTemporaryFile(
        prefix=f"{output.stem}.",
        suffix=".epub.part",
        dir=str(output.parent),
        delete=False,
    )
    tmp_path = Path(tmp_handle.name)
    tmp_handle.close()

    try:
        with zipfile.ZipFile(tmp_path, "w") as zf:
            zf.writestr(MIMETYPE_ENTRY, MIMETYPE, compress_type=zipfile.ZIP_STORED)
            for file_path in _iter_files(source):
                member = file_path.relative_to(source).as_posix()
                if member == MIMETYPE_ENTRY:
                    continue
                try:
                    payload = file_path.read_bytes()
                except OSError as exc:
                    logger.warning("skipping unreadable file %s: %s", file_path, exc)
                    continue
                zf.writestr(member, payload, compress_type=_compress_type(member))
        tmp_path.replace(output)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
    return output
