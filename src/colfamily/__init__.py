"""colfamily - Key- and index-based finder synthesis for column-family records."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("colfamily")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = ["__version__"]
