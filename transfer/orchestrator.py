"""Entry points for uploading paths and downloading outbox files."""

import os
from typing import Callable, Optional

from common.config import Config
from common.exceptions import NotFoundError, ValidationError
from common.logging_config import get_logger
from common.types import TransferTarget
from transfer.client import LegaClient
from transfer.inventory import FileManager, ResumablesManager
from transfer.progress import ProgressBar
from transfer.strategies import DirectStrategy, ProxiedStrategy, TransferStrategy
from transfer.tokens import TokenLifecycleManager
from transfer.trusted_time import TrustedTimeSource
from transfer.uploader import NO_RETRY, ChunkUploader, RetryPolicy

logger = get_logger(__name__)

DOWNLOAD_BLOCK_SIZE = 64 * 1024


class TransferOrchestrator:
    """
    Resolves paths to files and runs uploads and downloads one at a time.
    """

    def __init__(
        self,
        config: Config,
        client: LegaClient,
        file_manager: Optional[FileManager] = None,
        resumables_manager: Optional[ResumablesManager] = None,
        tokens: Optional[TokenLifecycleManager] = None,
        retry_policy: RetryPolicy = NO_RETRY,
        progress_factory: Callable[[str, int], ProgressBar] = ProgressBar,
    ):
        self.config = config
        self.client = client
        self.file_manager = file_manager or FileManager(client)
        self.resumables_manager = resumables_manager or ResumablesManager(client)
        self._tokens = tokens
        self.retry_policy = retry_policy
        self.progress_factory = progress_factory

    @property
    def tokens(self) -> TokenLifecycleManager:
        # Built lazily: only direct transfers need tokens and trusted time.
        if self._tokens is None:
            self._tokens = TokenLifecycleManager(
                self.client, TrustedTimeSource(self.config.get_ntp_servers())
            )
        return self._tokens

    def _strategy(self, direct: bool) -> TransferStrategy:
        if direct:
            return DirectStrategy(self.client, self.tokens)
        return ProxiedStrategy(self.client)

    def _uploader(self, direct: bool) -> ChunkUploader:
        return ChunkUploader(
            self.file_manager,
            self._strategy(direct),
            self.config.get_chunk_size_bytes(),
            retry_policy=self.retry_policy,
            progress_factory=self.progress_factory,
        )

    def upload(self, path: str, resume: bool = False, direct: bool = False) -> None:
        """
        Upload a file, or every file below a directory.

        Directory members are uploaded one at a time in name order; the first
        failure aborts the remaining ones. With resume, a file without a
        matching resumable record is skipped without error.

        Raises:
            ValidationError: Bad path, duplicate, or not a Crypt4GH file
            TransportError: Rejected or failed request
            TokenError: Direct mode could not obtain a valid token
        """
        target = TransferTarget.resolve(path)
        if target.is_dir:
            self._upload_folder(target.path, resume, direct)
            return

        with open(target.path, 'rb') as handle:
            if not resume:
                self._uploader(direct).upload(handle, target.size)
                return

            for resumable in self.resumables_manager.list_resumables():
                if resumable.name == target.name:
                    logger.info(
                        f"Resuming {target.name} [upload_id={resumable.id}, chunk={resumable.chunk}, offset={resumable.size}]"
                    )
                    self._uploader(direct).upload(
                        handle,
                        target.size,
                        upload_id=resumable.id,
                        offset=resumable.size,
                        start_chunk=resumable.chunk,
                    )
                    return
            logger.info(f"No resumable upload found for {target.name}, nothing to do")

    def _upload_folder(self, folder: str, resume: bool, direct: bool) -> None:
        for entry in sorted(os.listdir(folder)):
            self.upload(os.path.abspath(os.path.join(folder, entry)), resume=resume, direct=direct)

    def download(self, file_name: str, direct: bool = False) -> str:
        """
        Download a file from the outbox into the current directory.

        Returns:
            Path of the written file

        Raises:
            ValidationError: A local file with that name already exists
            NotFoundError: The outbox has no file with that name
            TransportError: Rejected or failed request
        """
        if os.path.exists(file_name):
            raise ValidationError(f"File {file_name} exists locally, aborting.")

        file_size = None
        for exported in self.file_manager.list_files(inbox=False):
            if os.path.basename(exported.name) == file_name:
                file_size = exported.size
                break
        if file_size is None:
            raise NotFoundError(f"File {file_name} not found in the outbox.")

        request = self._strategy(direct).download_request(file_name)
        logger.info(f"Downloading {file_name} ({file_size} bytes)")
        try:
            f = open(file_name, 'xb')
        except FileExistsError as e:
            raise ValidationError(f"File {file_name} exists locally, aborting.") from e
        with f:
            with self.client.stream('GET', **request) as response:
                self.client.check_status(response)
                progress = self.progress_factory(f"Downloading {file_name}", file_size)
                for block in response.iter_bytes(chunk_size=DOWNLOAD_BLOCK_SIZE):
                    f.write(block)
                    progress.advance(len(block))
                progress.finish()
        return os.path.abspath(file_name)
