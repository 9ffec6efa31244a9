import tempfile
import unittest
from pathlib import Path
from unittest import mock
import zipfile

from bupe.archive import (
    extract_entries,
    locate_root_document,
    open_archive,
    validate_mimetype,
    write_archive,
)
from bupe.errors import CorruptArchive, EpubFileNotFound, InvalidExtension, InvalidMimetype, MissingRootfile

CONTAINER_XML = (
    "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
    "<container version=\"1.0\" xmlns=\"urn:oasis:names:tc:opendocument:xmlns:container\">"
    "<rootfiles><rootfile full-path=\"OEBPS/content.opf\" media-type=\"application/oebps-package+xml\"/>"
    "</rootfiles></container>"
)


def _write_zip(path: Path, members: dict[str, bytes]) -> None:
    with zipfile.ZipFile(path, "w") as zf:
        for name, payload in members.items():
            zf.writestr(name, payload)


class ArchiveReaderTests(unittest.TestCase):
    def test_missing_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            missing = Path(tmp) / "missing.epub"
            with self.assertRaises(EpubFileNotFound) as ctx:
                with open_archive(missing):
                    pass
            self.assertIsInstance(ctx.exception, FileNotFoundError)

    def test_wrong_extension(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "book.zip"
            _write_zip(path, {"mimetype": b"application/epub+zip"})
            with self.assertRaises(InvalidExtension):
                with open_archive(path):
                    pass

    def test_extension_is_case_insensitive(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "BOOK.EPUB"
            _write_zip(path, {"mimetype": b"application/epub+zip"})
            with open_archive(path) as zf:
                validate_mimetype(zf)

    def test_not_a_zip(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "broken.epub"
            path.write_text("This is not an EPUB", encoding="utf-8")
            with self.assertRaises(CorruptArchive):
                with open_archive(path):
                    pass

    def test_extract_entries_skips_missing_names(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "book.epub"
            _write_zip(path, {"mimetype": b"application/epub+zip", "a.txt": b"A"})
            with open_archive(path) as zf:
                entries = extract_entries(zf, ["a.txt", "b.txt"])
            self.assertEqual(entries, {"a.txt": b"A"})

    def test_invalid_mimetype(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            for payload in (b"application/zip", b"application/epub+zip\n", b""):
                path = Path(tmp) / "book.epub"
                _write_zip(path, {"mimetype": payload})
                with open_archive(path) as zf:
                    with self.assertRaises(InvalidMimetype):
                        validate_mimetype(zf)

    def test_missing_mimetype(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "book.epub"
            _write_zip(path, {"META-INF/container.xml": CONTAINER_XML.encode("utf-8")})
            with open_archive(path) as zf:
                with self.assertRaises(InvalidMimetype):
                    validate_mimetype(zf)

    def test_locate_root_document(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "book.epub"
            _write_zip(path, {"META-INF/container.xml": CONTAINER_XML.encode("utf-8")})
            with open_archive(path) as zf:
                self.assertEqual(locate_root_document(zf), "OEBPS/content.opf")

    def test_locate_root_document_tolerates_malformed_container(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "book.epub"
            broken = "<container><rootfiles><rootfile\n  full-path=\"EPUB/package.opf\" media-type=\"x\">"
            _write_zip(path, {"META-INF/container.xml": broken.encode("utf-8")})
            with open_archive(path) as zf:
                self.assertEqual(locate_root_document(zf), "EPUB/package.opf")

    def test_missing_rootfile(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "book.epub"
            _write_zip(path, {"META-INF/container.xml": b"<container><rootfiles/></container>"})
            with open_archive(path) as zf:
                with self.assertRaises(MissingRootfile):
                    locate_root_document(zf)

    def test_missing_container(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "book.epub"
            _write_zip(path, {"mimetype": b"application/epub+zip"})
            with open_archive(path) as zf:
                with self.assertRaises(MissingRootfile):
                    locate_root_document(zf)


class ArchiveWriterTests(unittest.TestCase):
    def _stage(self, root: Path) -> None:
        (root / "META-INF").mkdir(parents=True)
        (root / "OEBPS" / "content" / "assets").mkdir(parents=True)
        (root / "META-INF" / "container.xml").write_text(CONTAINER_XML, encoding="utf-8")
        (root / "OEBPS" / "content.opf").write_text("<package/>", encoding="utf-8")
        (root / "OEBPS" / "content" / "a.xhtml").write_text("<html/>", encoding="utf-8")
        (root / "OEBPS" / "content" / "assets" / "pic.gif").write_bytes(b"GIF89a")

    def test_mimetype_is_first_and_stored(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            stage = Path(tmp) / "stage"
            self._stage(stage)
            output = write_archive(stage, Path(tmp) / "out" / "book.epub")
            with zipfile.ZipFile(output) as zf:
                first = zf.infolist()[0]
                self.assertEqual(first.filename, "mimetype")
                self.assertEqual(first.compress_type, zipfile.ZIP_STORED)
                self.assertEqual(zf.read("mimetype"), b"application/epub+zip")

    def test_members_are_relative_and_selectively_compressed(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            stage = Path(tmp) / "stage"
            self._stage(stage)
            output = write_archive(stage, Path(tmp) / "book.epub")
            with zipfile.ZipFile(output) as zf:
                infos = {info.filename: info for info in zf.infolist()}
                self.assertEqual(
                    set(infos),
                    {
                        "mimetype",
                        "META-INF/container.xml",
                        "OEBPS/content.opf",
                        "OEBPS/content/a.xhtml",
                        "OEBPS/content/assets/pic.gif",
                    },
                )
                self.assertEqual(infos["OEBPS/content/a.xhtml"].compress_type, zipfile.ZIP_DEFLATED)
                self.assertEqual(infos["OEBPS/content.opf"].compress_type, zipfile.ZIP_DEFLATED)
                self.assertEqual(infos["OEBPS/content/assets/pic.gif"].compress_type, zipfile.ZIP_STORED)
                self.assertEqual(zf.read("OEBPS/content/assets/pic.gif"), b"GIF89a")

    def test_staged_mimetype_file_is_not_duplicated(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            stage = Path(tmp) / "stage"
            self._stage(stage)
            (stage / "mimetype").write_text("text/plain", encoding="utf-8")
            output = write_archive(stage, Path(tmp) / "book.epub")
            with zipfile.ZipFile(output) as zf:
                self.assertEqual(zf.namelist().count("mimetype"), 1)
                self.assertEqual(zf.read("mimetype"), b"application/epub+zip")

    def test_unreadable_files_are_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            stage = Path(tmp) / "stage"
            self._stage(stage)
            unreadable = stage / "OEBPS" / "content" / "a.xhtml"
            original_read_bytes = Path.read_bytes

            def fake_read_bytes(path: Path) -> bytes:
                if path == unreadable:
                    raise PermissionError("denied")
                return original_read_bytes(path)

            with mock.patch.object(Path, "read_bytes", autospec=True, side_effect=fake_read_bytes):
                with self.assertLogs("bupe.archive", level="WARNING"):
                    output = write_archive(stage, Path(tmp) / "book.epub")
            with zipfile.ZipFile(output) as zf:
                names = zf.namelist()
            self.assertNotIn("OEBPS/content/a.xhtml", names)
            self.assertIn("OEBPS/content.opf", names)
            self.assertEqual(names[0], "mimetype")

    def test_failed_write_leaves_no_partial_archive(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            stage = Path(tmp) / "stage"
            self._stage(stage)
            out_dir = Path(tmp) / "out"
            output = out_dir / "book.epub"
            original_writestr = zipfile.ZipFile.writestr
            calls = []

            def failing_writestr(zf: zipfile.ZipFile, *args: object, **kwargs: object) -> None:
                calls.append(args[0])
                if len(calls) == 3:
                    raise RuntimeError("disk full")
                original_writestr(zf, *args, **kwargs)

            with mock.patch.object(zipfile.ZipFile, "writestr", autospec=True, side_effect=failing_writestr):
                with self.assertRaises(RuntimeError):
                    write_archive(stage, output)
            self.assertFalse(output.exists())
            self.assertEqual(list(out_dir.iterdir()), [])

    def test_failed_write_keeps_previous_archive(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            stage = Path(tmp) / "stage"
            self._stage(stage)
            output = Path(tmp) / "book.epub"
            output.write_bytes(b"previous")

            with mock.patch.object(zipfile.ZipFile, "writestr", autospec=True, side_effect=KeyboardInterrupt):
                with self.assertRaises(KeyboardInterrupt):
                    write_archive(stage, output)
            self.assertEqual(output.read_bytes(), b"previous")
            self.assertEqual(sorted(path.name for path in Path(tmp).iterdir()), ["book.epub", "stage"])

    def test_text_and_vector_formats_are_compressed(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            stage = Path(tmp) / "stage"
            self._stage(stage)
            (stage / "OEBPS" / "content" / "old.htm").write_text("<html/>", encoding="utf-8")
            (stage / "OEBPS" / "content" / "assets" / "logo.svg").write_text("<svg/>", encoding="utf-8")
            output = write_archive(stage, Path(tmp) / "book.epub")
            with zipfile.ZipFile(output) as zf:
                infos = {info.filename: info for info in zf.infolist()}
            self.assertEqual(infos["OEBPS/content/old.htm"].compress_type, zipfile.ZIP_DEFLATED)
            self.assertEqual(infos["OEBPS/content/assets/logo.svg"].compress_type, zipfile.ZIP_DEFLATED)


if __name__ == "__main__":
    unittest.main()
