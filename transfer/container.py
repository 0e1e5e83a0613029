"""Crypt4GH container recognition."""

import struct
from typing import BinaryIO

from common.exceptions import ValidationError
from common.logging_config import get_logger

logger = get_logger(__name__)

CRYPT4GH_MAGIC = b'crypt4gh'
CRYPT4GH_VERSION = 1
NOT_A_CONTAINER = 'not a Crypt4GH file'


def _read_exact(handle: BinaryIO, size: int) -> bytes:
    data = handle.read(size)
    if len(data) != size:
        raise ValueError(f"unexpected end of header ({len(data)} of {size} bytes)")
    return data


def read_crypt4gh_header(handle: BinaryIO) -> int:
    """
    Parse the Crypt4GH header from the current position.

    Packets are skipped, not decrypted.

    Returns:
        Header length in bytes

    Raises:
        ValueError: If the bytes do not form a Crypt4GH header
    """
    if _read_exact(handle, len(CRYPT4GH_MAGIC)) != CRYPT4GH_MAGIC:
        raise ValueError("bad magic")
    version, packet_count = struct.unpack('<II', _read_exact(handle, 8))
    if version != CRYPT4GH_VERSION:
        raise ValueError(f"unsupported version {version}")

    length = len(CRYPT4GH_MAGIC) + 8
    for _ in range(packet_count):
        (packet_length,) = struct.unpack('<I', _read_exact(handle, 4))
        if packet_length < 4:
            raise ValueError(f"invalid packet length {packet_length}")
        _read_exact(handle, packet_length - 4)
        length += packet_length
    return length


def peek_crypt4gh_header(handle: BinaryIO, name: str) -> int:
    """
    Check that the file starts with a Crypt4GH header.

    The handle is put back where it was, whatever the outcome.

    Args:
        handle: Open, seekable binary file
        name: File name used in the error message

    Returns:
        Header length in bytes

    Raises:
        ValidationError: "<name>: not a Crypt4GH file"
    """
    position = handle.tell()
    try:
        handle.seek(0)
        length = read_crypt4gh_header(handle)
    except (ValueError, struct.error) as e:
        logger.debug(f"Header check failed for {name}: {e}")
        raise ValidationError(f"{name}: {NOT_A_CONTAINER}") from e
    finally:
        handle.seek(position)
    logger.debug(f"Crypt4GH header found in {name} ({length} bytes)")
    return length
