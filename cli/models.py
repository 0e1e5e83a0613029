"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class UploadCommand:
    """Upload a file or directory."""

    path: str
    resume: bool = False
    direct: bool = False
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class DownloadCommand:
    """Download a file from the outbox."""

    file_name: str
    direct: bool = False
    command: Literal["download"] = "download"


@dataclass(frozen=True)
class FilesCommand:
    """List inbox or outbox files."""

    outbox: bool = False
    command: Literal["files"] = "files"


@dataclass(frozen=True)
class DeleteFileCommand:
    """Delete a file from the inbox."""

    file_name: str
    command: Literal["files delete"] = "files delete"


@dataclass(frozen=True)
class ResumablesCommand:
    """List resumable uploads."""

    command: Literal["resumables"] = "resumables"


@dataclass(frozen=True)
class DeleteResumableCommand:
    """Discard a resumable upload."""

    upload_id: str
    command: Literal["resumables delete"] = "resumables delete"


CommandRequest = (
    UploadCommand
    | DownloadCommand
    | FilesCommand
    | DeleteFileCommand
    | ResumablesCommand
    | DeleteResumableCommand
)
