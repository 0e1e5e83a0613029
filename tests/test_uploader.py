"""Unit tests for ChunkUploader."""

import hashlib
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from common.exceptions import TokenError, TransportError, ValidationError
from conftest import EMPTY_SHA256, SAMPLE_SIZE, SteppingTimeSource, make_token
from transfer.inventory import FileManager
from transfer.progress import NullProgress
from transfer.strategies import DirectStrategy, ProxiedStrategy
from transfer.tokens import TokenLifecycleManager
from transfer.uploader import ChunkUploader, RetryPolicy

CHUNK_SIZE = 16384


@pytest.fixture
def uploader(client, quiet_progress):
    return ChunkUploader(FileManager(client), ProxiedStrategy(client), CHUNK_SIZE, progress_factory=quiet_progress)


def test_upload_sends_chunks_in_order(uploader, fake_lega, sample_file):
    """Chunks are numbered from 1 and the id is sent from the second chunk on."""
    with open(sample_file, 'rb') as handle:
        session = uploader.upload(handle, SAMPLE_SIZE)

    chunks = fake_lega.chunk_requests
    assert [r.url.params['chunk'] for r in chunks] == ['1', '2', '3', '4', '5']
    assert 'uploadId' not in chunks[0].url.params
    assert all(r.url.params['uploadId'] == '123' for r in chunks[1:])
    assert bytes(fake_lega.received) == sample_file.read_bytes()
    assert session.upload_id == '123'
    assert session.next_chunk_index == 6
    assert session.byte_offset == SAMPLE_SIZE


def test_upload_sends_md5_of_each_chunk(uploader, fake_lega, sample_file):
    """Each chunk carries the MD5 of its own bytes."""
    data = sample_file.read_bytes()
    with open(sample_file, 'rb') as handle:
        uploader.upload(handle, SAMPLE_SIZE)

    for i, request in enumerate(fake_lega.chunk_requests):
        expected = hashlib.md5(data[i * CHUNK_SIZE:(i + 1) * CHUNK_SIZE]).hexdigest()
        assert request.url.params['md5'] == expected


def test_finalize_declares_size_and_remaining_digest(uploader, fake_lega, sample_file):
    """Finalize is sent once, with the file size and the digest of the unread remainder."""
    with open(sample_file, 'rb') as handle:
        uploader.upload(handle, SAMPLE_SIZE)

    assert len(fake_lega.finalize_requests) == 1
    params = fake_lega.finalize_requests[0].url.params
    assert params['fileSize'] == '65688'
    assert params['sha256'] == EMPTY_SHA256
    assert params['uploadId'] == '123'
    assert fake_lega.requests[-1] is fake_lega.finalize_requests[0]


def test_proxied_requests_carry_credentials(uploader, fake_lega, sample_file):
    """Chunk requests use the proxy bearer and the basic credential pair."""
    with open(sample_file, 'rb') as handle:
        uploader.upload(handle, SAMPLE_SIZE)

    request = fake_lega.chunk_requests[0]
    assert request.headers['Proxy-Authorization'] == 'Bearer token'
    assert request.headers['Authorization'].startswith('Basic ')
    assert request.url.path == '/stream/sample.txt.enc'


def test_duplicate_in_inbox_fails_without_chunks(uploader, fake_lega, sample_file):
    """A file already in the inbox is rejected before any chunk is sent."""
    fake_lega.inbox.append({'fileName': 'some/dir/sample.txt.enc', 'size': 1, 'modifiedDate': '2010'})

    with open(sample_file, 'rb') as handle:
        with pytest.raises(ValidationError) as exc_info:
            uploader.upload(handle, SAMPLE_SIZE)

    assert 'sample.txt.enc is already uploaded' in str(exc_info.value)
    assert 'files delete sample.txt.enc' in str(exc_info.value)
    assert fake_lega.chunk_requests == []


def test_not_a_container_fails_before_chunks(uploader, fake_lega, plain_file):
    """A file without a Crypt4GH header is rejected before any chunk is sent."""
    with open(plain_file, 'rb') as handle:
        with pytest.raises(ValidationError) as exc_info:
            uploader.upload(handle, plain_file.stat().st_size)

    assert str(exc_info.value).endswith('not a Crypt4GH file')
    assert fake_lega.chunk_requests == []


def test_corrupted_chunk_surfaces_server_status(uploader, fake_lega, sample_file):
    """A digest mismatch detected by the server aborts with its status line."""
    fake_lega.corrupt_chunks = True

    with open(sample_file, 'rb') as handle:
        with pytest.raises(TransportError) as exc_info:
            uploader.upload(handle, SAMPLE_SIZE)

    assert str(exc_info.value) == '500 Internal Server Error'
    assert exc_info.value.status_code == 500
    assert len(fake_lega.chunk_requests) == 1
    assert fake_lega.finalize_requests == []


def test_failed_chunk_is_not_retried(uploader, fake_lega, sample_file):
    """A rejected chunk stops the loop; nothing after it is sent."""
    fake_lega.fail_chunk = 3

    with open(sample_file, 'rb') as handle:
        with pytest.raises(TransportError):
            uploader.upload(handle, SAMPLE_SIZE)

    assert [r.url.params['chunk'] for r in fake_lega.chunk_requests] == ['1', '2', '3']
    assert fake_lega.finalize_requests == []


def test_retry_policy_is_opt_in(client, fake_lega, sample_file, quiet_progress, monkeypatch):
    """An explicit retry policy repeats a rejected chunk."""
    monkeypatch.setattr('transfer.uploader.time.sleep', lambda delay: None)
    calls = {'count': 0}
    original = fake_lega._patch

    def flaky_patch(request, upload_id, md5):
        if request.url.params.get('chunk') == '2' and calls['count'] == 0:
            calls['count'] += 1
            return httpx.Response(503)
        return original(request, upload_id, md5)

    fake_lega._patch = flaky_patch
    uploader = ChunkUploader(
        FileManager(client),
        ProxiedStrategy(client),
        CHUNK_SIZE,
        retry_policy=RetryPolicy(max_retries=2, backoff_multiplier=0.01),
        progress_factory=quiet_progress,
    )

    with open(sample_file, 'rb') as handle:
        uploader.upload(handle, SAMPLE_SIZE)

    assert [r.url.params['chunk'] for r in fake_lega.chunk_requests] == ['1', '2', '2', '3', '4', '5']
    assert len(fake_lega.finalize_requests) == 1


def test_resume_starts_at_offset_and_chunk(uploader, fake_lega, sample_file):
    """A resumed upload seeks past confirmed bytes and continues the numbering."""
    offset = 2 * CHUNK_SIZE
    with open(sample_file, 'rb') as handle:
        session = uploader.upload(handle, SAMPLE_SIZE, upload_id='123', offset=offset, start_chunk=3)

    chunks = fake_lega.chunk_requests
    assert [r.url.params['chunk'] for r in chunks] == ['3', '4', '5']
    assert all(r.url.params['uploadId'] == '123' for r in chunks)
    assert bytes(fake_lega.received) == sample_file.read_bytes()[offset:]
    assert session.byte_offset == SAMPLE_SIZE


def test_resume_with_unknown_upload_id_fails(uploader, fake_lega, sample_file):
    """The server rejects an upload id it does not know."""
    with open(sample_file, 'rb') as handle:
        with pytest.raises(TransportError):
            uploader.upload(handle, SAMPLE_SIZE, upload_id='999', offset=CHUNK_SIZE, start_chunk=2)


def test_chunk_response_without_id_fails(client, fake_lega, sample_file, quiet_progress):
    """A chunk acknowledgement without an id is a malformed response."""
    fake_lega._patch = lambda request, upload_id, md5: httpx.Response(200, json={})
    uploader = ChunkUploader(FileManager(client), ProxiedStrategy(client), CHUNK_SIZE, progress_factory=quiet_progress)

    with open(sample_file, 'rb') as handle:
        with pytest.raises(TransportError, match="missing upload 'id'"):
            uploader.upload(handle, SAMPLE_SIZE)


def test_direct_upload_uses_session_token(client, fake_lega, sample_file, fixed_time, quiet_progress):
    """Direct mode targets the per-user TSD path with the session bearer."""
    tokens = TokenLifecycleManager(client, fixed_time)
    uploader = ChunkUploader(
        FileManager(client), DirectStrategy(client, tokens), CHUNK_SIZE, progress_factory=quiet_progress
    )

    with open(sample_file, 'rb') as handle:
        uploader.upload(handle, SAMPLE_SIZE)

    chunks = fake_lega.chunk_requests
    assert len(chunks) == 5
    assert chunks[0].url.path == '/v1/p969/ega/alice/files/sample.txt.enc'
    assert chunks[0].headers['Authorization'] == f'Bearer {fake_lega.token}'
    assert 'id' not in chunks[0].url.params
    assert all(r.url.params['id'] == '123' for r in chunks[1:])
    assert 'md5' not in chunks[0].url.params
    finalize = fake_lega.finalize_requests[0].url.params
    assert finalize['chunk'] == 'end'
    assert finalize['id'] == '123'
    assert len([r for r in fake_lega.requests if r.url.path == '/gettoken']) == 1
    # one check of the newly issued token, then one before every later request
    assert fixed_time.calls == 6


def test_direct_upload_refreshes_expired_token(client, fake_lega, sample_file, quiet_progress):
    """A token that enters the safety margin is replaced before the next request."""
    clock = SteppingTimeSource(datetime(2030, 1, 1, tzinfo=timezone.utc), timedelta(minutes=4))
    fake_lega.clock = clock
    fake_lega.token_ttl = 10 * 60
    tokens = TokenLifecycleManager(client, clock)
    uploader = ChunkUploader(
        FileManager(client), DirectStrategy(client, tokens), CHUNK_SIZE, progress_factory=quiet_progress
    )

    with open(sample_file, 'rb') as handle:
        uploader.upload(handle, SAMPLE_SIZE)

    # issued before chunk 1, replaced before chunks 3 and 5
    assert len([r for r in fake_lega.requests if r.url.path == '/gettoken']) == 3
    assert len(fake_lega.finalize_requests) == 1
    assert fake_lega.finalize_requests[0].headers['Authorization'] == f'Bearer {fake_lega.token}'


def test_direct_upload_rejects_token_issued_inside_margin(client, fake_lega, sample_file, fixed_time, quiet_progress):
    """A token that is already about to expire when issued stops the upload."""
    fake_lega.token = make_token(exp=int(fixed_time.current.timestamp()) + 60)
    tokens = TokenLifecycleManager(client, fixed_time)
    uploader = ChunkUploader(
        FileManager(client), DirectStrategy(client, tokens), CHUNK_SIZE, progress_factory=quiet_progress
    )

    with open(sample_file, 'rb') as handle:
        with pytest.raises(TokenError, match='issued already expired'):
            uploader.upload(handle, SAMPLE_SIZE)

    assert fake_lega.chunk_requests == []


def test_invalid_start_chunk_rejected(uploader, sample_file):
    with open(sample_file, 'rb') as handle:
        with pytest.raises(ValueError):
            uploader.upload(handle, SAMPLE_SIZE, start_chunk=0)


def test_progress_reaches_total(client, fake_lega, sample_file):
    """Progress is advanced per chunk and marked complete at the end."""
    bars = []

    def factory(label, total):
        bar = NullProgress(label, total)
        bars.append(bar)
        return bar

    uploader = ChunkUploader(FileManager(client), ProxiedStrategy(client), CHUNK_SIZE, progress_factory=factory)
    with open(sample_file, 'rb') as handle:
        uploader.upload(handle, SAMPLE_SIZE)

    assert bars[0].label == 'Uploading sample.txt.enc'
    assert bars[0].current == SAMPLE_SIZE
    assert bars[0]._finished


def test_negative_retry_count_rejected():
    with pytest.raises(ValueError, match='max_retries'):
        RetryPolicy(max_retries=-1)
