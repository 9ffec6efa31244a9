from .builder import build, normalize_config
from .errors import (
    CorruptArchive,
    EpubError,
    EpubFileNotFound,
    InvalidExtension,
    InvalidExtensionName,
    InvalidMediaType,
    InvalidMimetype,
    InvalidVersion,
    MissingRootfile,
)
from .models import Config, NavItem
from .parser import parse

__version__ = "0.4.0"

__all__ = [
    "Config",
    "CorruptArchive",
    "EpubError",
    "EpubFileNotFound",
    "InvalidExtension",
    "InvalidExtensionName",
    "InvalidMediaType",
    "InvalidMimetype",
    "InvalidVersion",
    "MissingRootfile",
    "NavItem",
    "build",
    "normalize_config",
    "parse",
]
