"""Chunked, resumable upload of a single file."""

import hashlib
import os
import time
from dataclasses import dataclass
from typing import BinaryIO, Callable, Optional, TypeVar

from common.exceptions import TransportError, ValidationError
from common.logging_config import get_logger
from common.types import UploadSession
from transfer.container import peek_crypt4gh_header
from transfer.inventory import FileManager
from transfer.progress import ProgressBar
from transfer.strategies import TransferStrategy

logger = get_logger(__name__)

T = TypeVar('T')

HASH_BLOCK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry policy for chunk requests.

    The default performs no retries: a failed chunk aborts the upload and the
    transfer is continued later with a resume.
    """
    max_retries: int = 0
    backoff_multiplier: float = 2.0

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must not be negative, got {self.max_retries}")

    def run(self, operation: Callable[[], T], description: str = 'request') -> T:
        for attempt in range(self.max_retries + 1):
            try:
                return operation()
            except TransportError as e:
                if attempt >= self.max_retries:
                    raise
                delay = self.backoff_multiplier ** attempt
                logger.warning(
                    f"{description} failed (attempt {attempt + 1}/{self.max_retries + 1}): {e}, retrying in {delay}s"
                )
                time.sleep(delay)
        raise AssertionError("unreachable")


NO_RETRY = RetryPolicy()


class ChunkUploader:
    """Runs the chunk loop and the integrity handshake for one file."""

    def __init__(
        self,
        file_manager: FileManager,
        strategy: TransferStrategy,
        chunk_size: int,
        retry_policy: RetryPolicy = NO_RETRY,
        progress_factory: Callable[[str, int], ProgressBar] = ProgressBar,
    ):
        """
        Args:
            file_manager: Inbox listing used for the duplicate check
            strategy: Request shaping for the proxied or direct route
            chunk_size: Chunk size in bytes
            retry_policy: Retries applied to each chunk request
            progress_factory: Builds the progress display from (label, total)
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.file_manager = file_manager
        self.strategy = strategy
        self.chunk_size = chunk_size
        self.retry_policy = retry_policy
        self.progress_factory = progress_factory

    def _check_not_uploaded(self, name: str, display_name: str) -> None:
        for remote in self.file_manager.list_files(inbox=True):
            remote_name = os.path.basename(remote.name)
            if remote_name == name:
                raise ValidationError(
                    f"File {display_name} is already uploaded. Please, remove it from the Inbox first: "
                    f"files delete {remote_name}"
                )

    def upload(
        self,
        handle: BinaryIO,
        size: int,
        upload_id: Optional[str] = None,
        offset: int = 0,
        start_chunk: int = 1,
    ) -> UploadSession:
        """
        Upload an open file starting at the given resume point.

        Args:
            handle: Open, seekable binary file; owned by the caller
            size: Total file size in bytes, declared in the finalize request
            upload_id: Existing upload session id when resuming
            offset: Byte offset to start reading from
            start_chunk: Index of the first chunk to send

        Returns:
            The completed upload session

        Raises:
            ValidationError: Duplicate in the inbox or not a Crypt4GH file
            TransportError: Any rejected or failed request
        """
        if start_chunk < 1:
            raise ValueError(f"start_chunk must be at least 1, got {start_chunk}")

        display_name = getattr(handle, 'name', None) or 'file'
        name = os.path.basename(str(display_name))

        self._check_not_uploaded(name, str(display_name))
        peek_crypt4gh_header(handle, str(display_name))
        handle.seek(offset)

        session = UploadSession(upload_id=upload_id, next_chunk_index=start_chunk, byte_offset=offset)
        logger.info(
            f"Uploading {name} ({size} bytes) via {self.strategy.name} "
            f"[chunk={start_chunk}, offset={offset}, upload_id={upload_id}]"
        )
        progress = self.progress_factory(f"Uploading {name}", size)
        progress.set_current(offset)

        while True:
            chunk = handle.read(self.chunk_size)
            if not chunk:
                break
            md5 = hashlib.md5(chunk).hexdigest()
            index = session.next_chunk_index
            received_id = self.retry_policy.run(
                lambda: self.strategy.upload_chunk(name, chunk, index, md5, session.upload_id),
                description=f"chunk {index} of {name}",
            )
            session.acknowledge(received_id, len(chunk))
            logger.debug(f"Chunk {index} of {name} accepted [upload_id={session.upload_id}]")
            progress.set_current(session.byte_offset)

        if session.upload_id is None:
            raise TransportError(f"No upload session was opened for {name}")

        # Digest of what is still unread, not of the whole file.
        hasher = hashlib.sha256()
        for block in iter(lambda: handle.read(HASH_BLOCK_SIZE), b''):
            hasher.update(block)
        checksum = hasher.hexdigest()

        logger.info(f"Finalizing {name}: assembling uploaded chunks [upload_id={session.upload_id}]")
        self.strategy.finalize(name, session.upload_id, size, checksum)
        progress.finish()
        logger.info(f"Upload of {name} complete")
        return session
