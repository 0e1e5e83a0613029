"""Command handler functions for CLI operations."""

from dataclasses import dataclass
from typing import Optional

from common.config import Config
from common.exceptions import LegaError
from common.logging_config import get_logger
from cli.models import (
    DeleteFileCommand,
    DeleteResumableCommand,
    DownloadCommand,
    FilesCommand,
    ResumablesCommand,
    UploadCommand,
)
from transfer.client import LegaClient
from transfer.inventory import FileManager, ResumablesManager
from transfer.orchestrator import TransferOrchestrator
from transfer.progress import format_file_size

logger = get_logger(__name__)


@dataclass
class Services:
    """Components built once per process from one Config."""

    config: Config
    client: LegaClient
    file_manager: FileManager
    resumables_manager: ResumablesManager
    orchestrator: TransferOrchestrator

    @classmethod
    def from_config(cls, config: Config) -> 'Services':
        client = LegaClient(config)
        file_manager = FileManager(client)
        resumables_manager = ResumablesManager(client)
        orchestrator = TransferOrchestrator(
            config,
            client,
            file_manager=file_manager,
            resumables_manager=resumables_manager,
        )
        return cls(config, client, file_manager, resumables_manager, orchestrator)

    def close(self) -> None:
        self.client.close()


_services: Optional[Services] = None


def get_services() -> Services:
    """
    Get or create the process-wide Services instance.

    Returns:
        Services built from environment configuration
    """
    global _services
    if _services is None:
        logger.debug("Creating Services from environment configuration")
        _services = Services.from_config(Config())
    return _services


def handle_upload(cmd: UploadCommand, services: Optional[Services] = None) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand with path and flags
        services: Optional Services for dependency injection (testing)

    Returns:
        Success or error message
    """
    logger.info(f"Executing upload command: path={cmd.path} resume={cmd.resume} direct={cmd.direct}")
    try:
        if services is None:
            services = get_services()
        services.orchestrator.upload(cmd.path, resume=cmd.resume, direct=cmd.direct)
    except (LegaError, OSError) as e:
        logger.error(f"Upload of {cmd.path} failed: {e}")
        return f"Error: {e}"
    return f"Upload of {cmd.path} finished."


def handle_download(cmd: DownloadCommand, services: Optional[Services] = None) -> str:
    """
    Handle 'download' command.

    Args:
        cmd: DownloadCommand with file name
        services: Optional Services for dependency injection (testing)

    Returns:
        Success or error message
    """
    logger.info(f"Executing download command: file_name={cmd.file_name} direct={cmd.direct}")
    try:
        if services is None:
            services = get_services()
        saved_to = services.orchestrator.download(cmd.file_name, direct=cmd.direct)
    except (LegaError, OSError) as e:
        logger.error(f"Download of {cmd.file_name} failed: {e}")
        return f"Error: {e}"
    return f"Downloaded: {cmd.file_name}\nSaved to: {saved_to}"


def handle_files(cmd: FilesCommand, services: Optional[Services] = None) -> str:
    """
    Handle 'files' command.

    Returns:
        Formatted list of files
    """
    box = "outbox" if cmd.outbox else "inbox"
    try:
        if services is None:
            services = get_services()
        files = services.file_manager.list_files(inbox=not cmd.outbox)
    except LegaError as e:
        return f"Error: {e}"

    if not files:
        return f"No files in the {box}."

    output = [f"Found {len(files)} file(s) in the {box}:\n"]
    for remote in files:
        output.append(
            f"  - {remote.name}\n"
            f"    Size: {format_file_size(remote.size)}\n"
            f"    Modified: {remote.modified_date}"
        )
    return '\n'.join(output)


def handle_delete_file(cmd: DeleteFileCommand, services: Optional[Services] = None) -> str:
    """Handle 'files delete' command."""
    try:
        if services is None:
            services = get_services()
        services.file_manager.delete_file(cmd.file_name)
    except LegaError as e:
        return f"Error: {e}"
    return f"Deleted {cmd.file_name} from the inbox."


def handle_resumables(cmd: ResumablesCommand, services: Optional[Services] = None) -> str:
    """
    Handle 'resumables' command.

    Returns:
        Formatted list of resumable uploads
    """
    try:
        if services is None:
            services = get_services()
        resumables = services.resumables_manager.list_resumables()
    except LegaError as e:
        return f"Error: {e}"

    if not resumables:
        return "No resumable uploads."

    output = [f"Found {len(resumables)} resumable upload(s):\n"]
    for resumable in resumables:
        output.append(
            f"  - {resumable.name} (ID: {resumable.id})\n"
            f"    Uploaded: {format_file_size(resumable.size)}\n"
            f"    Next chunk: {resumable.chunk}"
        )
    return '\n'.join(output)


def handle_delete_resumable(cmd: DeleteResumableCommand, services: Optional[Services] = None) -> str:
    """Handle 'resumables delete' command."""
    try:
        if services is None:
            services = get_services()
        services.resumables_manager.delete_resumable(cmd.upload_id)
    except LegaError as e:
        return f"Error: {e}"
    return f"Deleted resumable upload {cmd.upload_id}."


def close_services() -> None:
    """Release the process-wide Services instance, if one was created."""
    global _services
    if _services is not None:
        _services.close()
        _services = None
