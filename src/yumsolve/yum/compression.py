"""Compression utilities for repository catalogs."""

from __future__ import annotations

import bz2
import gzip
import logging
import zlib
from pathlib import Path
from typing import IO, Literal

from yumsolve.errors import CatalogFormatError

logger = logging.getLogger(__name__)

CompressionFormat = Literal["gzip", "bzip2", "none"]

CHUNK_SIZE = 1024 * 1024

GZIP_MAGIC = b"\x1f\x8b"
BZIP2_MAGIC = b"BZh"


def detect_compression(filename: str) -> CompressionFormat:
    """Detect compression format from filename extension.

    Args:
        filename: Filename to check (e.g., "primary.xml.gz", "primary.sqlite.bz2")

    Returns:
        Compression format ("none" if no known extension)
    """
    if filename.endswith(".gz"):
        return "gzip"
    elif filename.endswith(".bz2"):
        return "bzip2"
    else:
        return "none"


def sniff_compression(path: Path) -> CompressionFormat:
    """Detect compression format from the magic bytes of a file.

    Args:
        path: File to inspect

    Returns:
        Compression format ("none" if the header matches no known format)
    """
    with open(path, "rb") as f:
        header = f.read(3)
    if header[:2] == GZIP_MAGIC:
        return "gzip"
    elif header == BZIP2_MAGIC:
        return "bzip2"
    return "none"


def _open(path: Path, compression: CompressionFormat) -> IO[bytes]:
    if compression == "gzip":
        return gzip.open(path, "rb")
    elif compression == "bzip2":
        return bz2.open(path, "rb")
    elif compression == "none":
        return open(path, "rb")
    else:
        raise ValueError(f"Unknown compression format: {compression}")


def _copy(reader: IO[bytes], writer: IO[bytes], src: Path, compression: CompressionFormat) -> int:
    total = 0
    while True:
        try:
            chunk = reader.read(CHUNK_SIZE)
        except (OSError, EOFError, zlib.error) as e:
            raise CatalogFormatError(f"corrupt {compression} stream: {e}", src) from e
        if not chunk:
            return total
        writer.write(chunk)
        total += len(chunk)


def decompress_file(src: Path, dst: Path, compression: CompressionFormat) -> int:
    """Decompress ``src`` into ``dst``.

    A partially written ``dst`` is removed when decompression fails.

    Args:
        src: Compressed file
        dst: Destination of the decompressed data
        compression: Compression format of ``src``

    Returns:
        Number of bytes written

    Raises:
        CatalogFormatError: If ``src`` is not a valid stream of that format
        OSError: If a file cannot be read or written
    """
    try:
        with _open(src, compression) as reader, open(dst, "wb") as writer:
            written = _copy(reader, writer, src, compression)
    except BaseException:
        dst.unlink(missing_ok=True)
        raise

    logger.debug(f"Decompressed {src} ({compression}) into {dst}: {written} bytes")
    return written


def read_gzip_or_plain(path: Path) -> bytes:
    """Read a file that is usually gzip-compressed.

    Files without a gzip header are returned as they are, so catalogs that
    were stored uncompressed under a .gz name still load.

    Raises:
        CatalogFormatError: If the file has a gzip header but a broken stream
    """
    if sniff_compression(path) != "gzip":
        logger.debug(f"{path} has no gzip header, reading it as plain data")
        return path.read_bytes()

    try:
        with gzip.open(path, "rb") as f:
            return f.read()
    except (OSError, EOFError, zlib.error) as e:
        raise CatalogFormatError(f"corrupt gzip stream: {e}", path) from e
