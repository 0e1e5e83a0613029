"""Chunked, resumable transfers to and from a LocalEGA inbox/outbox."""
