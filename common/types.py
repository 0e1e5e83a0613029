"""Shared data type definitions (RemoteFile, ResumableRecord, UploadSession, etc.)."""

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from common.exceptions import ValidationError


@dataclass(frozen=True)
class TransferTarget:
    """
    A local path selected for upload.
    """
    path: str
    name: str
    size: int
    is_dir: bool

    @classmethod
    def resolve(cls, path: str) -> 'TransferTarget':
        """
        Resolve a local path, rejecting anything but regular files and directories.

        Raises:
            ValidationError: If the path is neither a file nor a directory
        """
        if os.path.isdir(path):
            return cls(path=path, name=os.path.basename(os.path.normpath(path)), size=0, is_dir=True)
        if os.path.isfile(path):
            return cls(path=path, name=os.path.basename(path), size=os.path.getsize(path), is_dir=False)
        raise ValidationError(f"{path}: not a regular file or directory")


@dataclass(frozen=True)
class RemoteFile:
    """
    Entry of the inbox or outbox listing.
    """
    name: str
    size: int
    modified_date: str


@dataclass(frozen=True)
class ResumableRecord:
    """
    Server-side state of a partially completed upload.

    size is the number of bytes already confirmed, chunk the next chunk index.
    """
    id: str
    name: str
    size: int
    chunk: int


@dataclass
class UploadSession:
    """
    Ephemeral state of one upload call.
    """
    upload_id: Optional[str] = None
    next_chunk_index: int = 1
    byte_offset: int = 0

    def acknowledge(self, upload_id: str, consumed: int) -> None:
        """Record an accepted chunk; the first acknowledged id sticks."""
        if self.upload_id is None:
            self.upload_id = upload_id
        self.next_chunk_index += 1
        self.byte_offset += consumed


@dataclass(frozen=True)
class UntrustedClaims:
    """
    Token payload decoded without signature verification.

    Informational only: nothing here is a security guarantee.
    """
    user: str
    exp: int
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    @property
    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.exp, tz=timezone.utc)
