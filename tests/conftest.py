"""Shared pytest fixtures for all tests."""

import hashlib
import struct
from datetime import datetime, timedelta, timezone

import httpx
import jwt
import pytest

from common.config import Config
from transfer.client import LegaClient
from transfer.progress import NullProgress

SAMPLE_SIZE = 65688
EMPTY_SHA256 = 'e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855'
TEST_ENVIRONMENT = {
    'CENTRAL_EGA_USERNAME': 'user',
    'CENTRAL_EGA_PASSWORD': 'pass',
    'LOCAL_EGA_INSTANCE_URL': 'http://localhost/',
    'ELIXIR_AAI_TOKEN': 'token',
    'TSD_BASE_URL': 'http://tsd.test/',
}


def make_crypt4gh_bytes(total_size: int) -> bytes:
    """
    Build a structurally valid Crypt4GH file of the requested size.

    One header packet of 108 bytes is followed by filler payload.
    """
    packet_body = bytes(range(104))
    header = b'crypt4gh' + struct.pack('<II', 1, 1) + struct.pack('<I', len(packet_body) + 4) + packet_body
    payload_size = total_size - len(header)
    payload = (bytes(range(256)) * (payload_size // 256 + 1))[:payload_size]
    return header + payload


def make_token(user: str = 'alice', exp: int = 2_000_000_000) -> str:
    return jwt.encode({'user': user, 'exp': exp}, 'signature-is-never-checked-by-the-client', algorithm='HS256')


class FixedTimeSource:
    """Trusted time source stub returning a fixed instant."""

    def __init__(self, now: datetime):
        self.current = now
        self.calls = 0

    def now(self) -> datetime:
        self.calls += 1
        return self.current


class SteppingTimeSource(FixedTimeSource):
    """Trusted time source stub that moves forward by `step` after each reading."""

    def __init__(self, now: datetime, step: timedelta):
        super().__init__(now)
        self.step = step

    def now(self) -> datetime:
        current = super().now()
        self.current = current + self.step
        return current


class FakeLega:
    """
    In-memory LocalEGA proxy and TSD file API behind an httpx.MockTransport.

    Chunk digests are recomputed from the received body, the way the real
    service does it; corrupt_chunks flips a byte on receipt to simulate damage
    in transit.
    """

    UPLOAD_ID = '123'

    def __init__(self, expected_size: int = SAMPLE_SIZE):
        self.inbox = [{'fileName': 'test.enc', 'size': 100, 'modifiedDate': '2010'}]
        self.outbox = [{'fileName': 'test2.enc', 'size': 4, 'modifiedDate': '2010'}]
        self.resumables = []
        self.token = make_token()
        # With token_ttl set, every /gettoken issues a new token valid for that
        # many seconds from clock.current.
        self.token_ttl = None
        self.clock = None
        self.expected_size = expected_size
        self.corrupt_chunks = False
        self.fail_chunk = None
        self.download_body = b'test'
        self.download_status = 200
        self.requests = []
        self.received = bytearray()

    @property
    def chunk_requests(self) -> list:
        return [r for r in self.requests if r.method == 'PATCH' and r.url.params.get('chunk') != 'end']

    @property
    def finalize_requests(self) -> list:
        return [r for r in self.requests if r.method == 'PATCH' and r.url.params.get('chunk') == 'end']

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == 'tsd.test':
            return self._tsd(request)
        if not request.headers.get('Proxy-Authorization', '').startswith('Bearer '):
            return httpx.Response(401)

        path = request.url.path
        params = request.url.params
        if path == '/files':
            if request.method == 'DELETE':
                return httpx.Response(200)
            files = self.outbox if params.get('inbox') == 'false' else self.inbox
            return httpx.Response(200, json={'files': files})
        if path == '/resumables':
            if request.method == 'DELETE':
                return httpx.Response(200)
            return httpx.Response(200, json={'resumables': self.resumables})
        if path == '/gettoken':
            if self.token_ttl is not None:
                self.token = make_token(exp=int(self.clock.current.timestamp()) + self.token_ttl)
            return httpx.Response(200, json={'token': self.token})
        if path.startswith('/stream/'):
            if request.method == 'GET':
                return httpx.Response(self.download_status, content=self.download_body)
            if request.method == 'PATCH':
                return self._patch(request, params.get('uploadId'), params.get('md5'))
        return httpx.Response(404)

    def _tsd(self, request: httpx.Request) -> httpx.Response:
        if request.headers.get('Authorization') != f'Bearer {self.token}':
            return httpx.Response(401)
        if request.method == 'GET':
            return httpx.Response(self.download_status, content=self.download_body)
        return self._patch(request, request.url.params.get('id'), None)

    def _patch(self, request: httpx.Request, upload_id, md5) -> httpx.Response:
        upload_id = upload_id or self.UPLOAD_ID
        if upload_id != self.UPLOAD_ID:
            return httpx.Response(500)
        chunk = request.url.params.get('chunk')
        if chunk == 'end':
            sha256 = request.url.params.get('sha256')
            file_size = request.url.params.get('fileSize')
            if sha256 is not None and (sha256 != EMPTY_SHA256 or file_size != str(self.expected_size)):
                return httpx.Response(500)
            return httpx.Response(200, json={'id': upload_id})

        if self.fail_chunk is not None and chunk == str(self.fail_chunk):
            return httpx.Response(500)
        body = bytearray(request.content)
        if self.corrupt_chunks and body:
            body[0] ^= 0xFF
        if md5 is not None and hashlib.md5(bytes(body)).hexdigest() != md5:
            return httpx.Response(500)
        self.received.extend(body)
        return httpx.Response(201 if chunk == '1' else 200, json={'id': upload_id})


@pytest.fixture
def config():
    """Config built from a fixed test environment."""
    return Config(environ=dict(TEST_ENVIRONMENT))


@pytest.fixture
def fake_lega():
    return FakeLega()


@pytest.fixture
def client(config, fake_lega):
    """LegaClient whose requests are answered by fake_lega."""
    lega_client = LegaClient(config, session=httpx.Client(transport=fake_lega.transport()))
    yield lega_client
    lega_client.close()


@pytest.fixture
def quiet_progress():
    return lambda label, total: NullProgress(label, total)


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a valid Crypt4GH sample file.

    Returns:
        Path to sample.txt.enc (65688 bytes)
    """
    file_path = tmp_path / 'sample.txt.enc'
    file_path.write_bytes(make_crypt4gh_bytes(SAMPLE_SIZE))
    return file_path


@pytest.fixture
def plain_file(tmp_path):
    """A file that is not a Crypt4GH container."""
    file_path = tmp_path / 'notes.txt'
    file_path.write_text('Sample content for testing')
    return file_path


@pytest.fixture
def fixed_time():
    return FixedTimeSource(datetime(2030, 1, 1, tzinfo=timezone.utc))
