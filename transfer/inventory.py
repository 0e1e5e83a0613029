"""Remote inventory: inbox/outbox listings and resumable uploads."""

from common.exceptions import TransportError
from common.logging_config import get_logger
from common.types import RemoteFile, ResumableRecord
from transfer.client import LegaClient

logger = get_logger(__name__)


class FileManager:
    """Lists and deletes files in the inbox and outbox."""

    def __init__(self, client: LegaClient):
        self.client = client

    def _files_url(self) -> str:
        return f"{self.client.config.get_instance_url()}/files"

    def list_files(self, inbox: bool = True) -> list[RemoteFile]:
        """
        List the inbox (inbox=True) or the outbox (inbox=False).

        Raises:
            TransportError: On non-success status or malformed body
        """
        response = self.client.do_request(
            'GET',
            self._files_url(),
            headers=self.client.proxy_headers(),
            params={'inbox': 'true' if inbox else 'false'},
            auth=self.client.basic_auth(),
        )
        self.client.check_status(response)
        data = self.client.parse_json(response)
        try:
            files = [
                RemoteFile(
                    name=entry['fileName'],
                    size=int(entry.get('size', 0)),
                    modified_date=str(entry.get('modifiedDate', '')),
                )
                for entry in data.get('files') or []
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError(f"Malformed files listing: {e}") from e
        logger.debug(f"Listed {len(files)} file(s) [inbox={inbox}]")
        return files

    def delete_file(self, file_name: str) -> None:
        """
        Delete a file from the inbox.
        """
        response = self.client.do_request(
            'DELETE',
            self._files_url(),
            headers=self.client.proxy_headers(),
            params={'fileName': file_name},
            auth=self.client.basic_auth(),
        )
        self.client.check_status(response)
        logger.info(f"Deleted inbox file: {file_name}")


class ResumablesManager:
    """Lists and deletes server-side records of interrupted uploads."""

    def __init__(self, client: LegaClient):
        self.client = client

    def _resumables_url(self) -> str:
        return f"{self.client.config.get_instance_url()}/resumables"

    def list_resumables(self) -> list[ResumableRecord]:
        """
        List resumable uploads of the current user.

        Raises:
            TransportError: On non-success status or malformed body
        """
        response = self.client.do_request(
            'GET',
            self._resumables_url(),
            headers=self.client.proxy_headers(),
            auth=self.client.basic_auth(),
        )
        self.client.check_status(response)
        data = self.client.parse_json(response)
        try:
            resumables = [
                ResumableRecord(
                    id=str(entry['id']),
                    name=entry['fileName'],
                    size=int(entry['size']),
                    chunk=int(entry['chunk']),
                )
                for entry in data.get('resumables') or []
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError(f"Malformed resumables listing: {e}") from e
        for record in resumables:
            if record.chunk < 1 or record.size < 0:
                raise TransportError(
                    f"Malformed resumables listing: {record.name} has chunk={record.chunk}, size={record.size}"
                )
        logger.debug(f"Listed {len(resumables)} resumable upload(s)")
        return resumables

    def delete_resumable(self, upload_id: str) -> None:
        """
        Discard a resumable upload on the server.
        """
        response = self.client.do_request(
            'DELETE',
            self._resumables_url(),
            headers=self.client.proxy_headers(),
            params={'id': upload_id},
            auth=self.client.basic_auth(),
        )
        self.client.check_status(response)
        logger.info(f"Deleted resumable upload: {upload_id}")
