"""Request shaping for the two upload routes.

ProxiedStrategy talks to the LocalEGA proxy with the operator's long-lived
credential; DirectStrategy talks to the TSD file API with a short-lived
session token.
"""

from typing import Optional
from urllib.parse import quote

from common.exceptions import TransportError
from common.logging_config import get_logger
from transfer.client import LegaClient
from transfer.tokens import TokenLifecycleManager

logger = get_logger(__name__)


class TransferStrategy:
    """Common interface of the upload routes."""

    name = 'abstract'

    def __init__(self, client: LegaClient):
        self.client = client

    def upload_chunk(
        self, file_name: str, chunk: bytes, index: int, md5: str, upload_id: Optional[str]
    ) -> str:
        """
        Send one chunk.

        Returns:
            Upload session id reported by the server

        Raises:
            TransportError: On connection failure or status outside {200, 201}
        """
        raise NotImplementedError

    def finalize(self, file_name: str, upload_id: str, file_size: int, sha256: str) -> None:
        """
        Close the upload session.

        Raises:
            TransportError: On connection failure or status outside {200, 201}
        """
        raise NotImplementedError

    def download_request(self, file_name: str) -> dict:
        """Keyword arguments for LegaClient.stream fetching an outbox file."""
        raise NotImplementedError

    def _session_id(self, response) -> str:
        self.client.check_status(response)
        data = self.client.parse_json(response)
        upload_id = data.get('id')
        if upload_id is None or upload_id == '':
            raise TransportError("Malformed response body: missing upload 'id'")
        return str(upload_id)


class ProxiedStrategy(TransferStrategy):
    """Upload through {instance}/stream, authenticated at the proxy."""

    name = 'proxied'

    def _stream_url(self, file_name: str) -> str:
        return f"{self.client.config.get_instance_url()}/stream/{quote(file_name, safe='')}"

    def upload_chunk(self, file_name, chunk, index, md5, upload_id):
        params = {'chunk': str(index), 'md5': md5}
        if upload_id is not None:
            params['uploadId'] = upload_id
        response = self.client.do_request(
            'PATCH',
            self._stream_url(file_name),
            content=chunk,
            headers=self.client.proxy_headers(),
            params=params,
            auth=self.client.basic_auth(),
        )
        return self._session_id(response)

    def finalize(self, file_name, upload_id, file_size, sha256):
        response = self.client.do_request(
            'PATCH',
            self._stream_url(file_name),
            headers=self.client.proxy_headers(),
            params={
                'uploadId': upload_id,
                'chunk': 'end',
                'fileSize': str(file_size),
                'sha256': sha256,
            },
            auth=self.client.basic_auth(),
        )
        self.client.check_status(response)

    def download_request(self, file_name):
        return {
            'url': self._stream_url(file_name),
            'headers': self.client.proxy_headers(),
            'params': {'fileName': file_name},
        }


class DirectStrategy(TransferStrategy):
    """Upload straight to the TSD file API with a per-user session token."""

    name = 'direct'

    def __init__(self, client: LegaClient, tokens: TokenLifecycleManager):
        super().__init__(client)
        self.tokens = tokens

    def _authorized(self, file_name: str) -> tuple[str, dict]:
        # Checked before every request so long uploads outlive one token.
        token, claims = self.tokens.ensure_fresh()
        url = '/'.join([
            self.client.config.get_tsd_url(),
            quote(claims.user, safe=''),
            'files',
            quote(file_name, safe=''),
        ])
        return url, {'Authorization': f'Bearer {token}'}

    def upload_chunk(self, file_name, chunk, index, md5, upload_id):
        url, headers = self._authorized(file_name)
        params = {'chunk': str(index)}
        if upload_id is not None:
            params['id'] = upload_id
        # The file API takes no digest parameter.
        logger.debug(f"Direct chunk {index} of {file_name} md5={md5}")
        response = self.client.do_request('PATCH', url, content=chunk, headers=headers, params=params)
        return self._session_id(response)

    def finalize(self, file_name, upload_id, file_size, sha256):
        url, headers = self._authorized(file_name)
        logger.debug(f"Direct finalize of {file_name} fileSize={file_size} sha256={sha256}")
        response = self.client.do_request(
            'PATCH', url, headers=headers, params={'chunk': 'end', 'id': upload_id}
        )
        self.client.check_status(response)

    def download_request(self, file_name):
        url, headers = self._authorized(file_name)
        return {'url': url, 'headers': headers}
