from __future__ import annotations


class EpubError(Exception):
    pass


class InvalidVersion(EpubError, ValueError):
    def __init__(self, version: object = None) -> None:
        super().__init__(f"invalid EPUB version {version!r}, expected '2.0' or '3.0'")
        self.version = version


class InvalidExtensionName(EpubError, ValueError):
    pass


class InvalidMediaType(EpubError, ValueError):
    def __init__(self, path: str) -> None:
        super().__init__(f"cannot derive a media type for {path!r}")
        self.path = path


class EpubFileNotFound(EpubError, FileNotFoundError):
    def __init__(self, path: object) -> None:
        super().__init__(f"file {path} does not exist")
        self.path = path


class InvalidExtension(EpubError, ValueError):
    def __init__(self, path: object) -> None:
        super().__init__(f"file {path} does not have an '.epub' extension")
        self.path = path


class InvalidMimetype(EpubError, ValueError):
    def __init__(self) -> None:
        super().__init__("invalid mimetype, must be 'application/epub+zip'")


class MissingRootfile(EpubError, ValueError):
    def __init__(self) -> None:
        super().__init__("could not find rootfile in META-INF/container.xml")


class CorruptArchive(EpubError, ValueError):
    pass
