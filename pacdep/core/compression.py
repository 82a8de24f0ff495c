"""
Compression utilities for pacdep

Sync databases (<DBPath>/sync/<repo>.db) are tar archives whose
compression depends on how the repository was built:
- gzip (repo-add default)
- zstd
- xz
- bzip2
The format is detected from the magic bytes, never from the file name.
"""

import tarfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

# Magic bytes for format detection
MAGIC_ZSTD = b'\x28\xb5\x2f\xfd'
MAGIC_GZIP = b'\x1f\x8b'
MAGIC_XZ = b'\xfd7zXZ\x00'
MAGIC_BZ2 = b'BZh'

def detect_format(data: bytes) -> str:
    """Detect compression format from magic bytes.

    Args:
        data: First 8+ bytes of the file

    Returns:
        Format name: 'zstd', 'gzip', 'xz', 'bzip2', or 'plain'
    """
    if data[:4] == MAGIC_ZSTD:
        return 'zstd'
    elif data[:2] == MAGIC_GZIP:
        return 'gzip'
    elif data[:6] == MAGIC_XZ:
        return 'xz'
    elif data[:3] == MAGIC_BZ2:
        return 'bzip2'
    else:
        return 'plain'

def _zstd():
    try:
        import zstandard
    except ImportError:
        raise ImportError(
            "Module 'zstandard' required for zstd decompression. "
            "Install with: pip install zstandard"
        )
    return zstandard


def decompress_stream(filename: Union[str, Path]):
    """Open a compressed file and return a binary stream.

    The caller owns the returned stream and must close it.
    """
    path = Path(filename)

    with open(path, 'rb') as f:
        magic = f.read(8)

    fmt = detect_format(magic)

    if fmt == 'zstd':
        dctx = _zstd().ZstdDecompressor()
        return dctx.stream_reader(open(path, 'rb'), closefd=True)

    elif fmt == 'gzip':
        import gzip
        return gzip.open(path, 'rb')

    elif fmt == 'xz':
        import lzma
        return lzma.open(path, 'rb')

    elif fmt == 'bzip2':
        import bz2
        return bz2.open(path, 'rb')

    else:
        return open(path, 'rb')

@contextmanager
def open_archive(filename: Union[str, Path]) -> Iterator[tarfile.TarFile]:
    """Open a (possibly compressed) tar archive for sequential reading.

    Streams are not seekable once decompressed, so the archive is opened
    in tarfile's stream mode: members must be read in archive order.
    """
    stream = decompress_stream(filename)
    try:
        with tarfile.open(fileobj=stream, mode='r|') as archive:
            yield archive
    finally:
        stream.close()
