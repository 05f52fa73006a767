"""Tests for the in-memory session registry."""

from __future__ import annotations

from bulkimport.api.registry import SessionRegistry
from bulkimport.schemas.catalog import site_schema
from bulkimport.session import ImportSession
from tests.fakes import FakeSubmitter


def _session():
    return ImportSession(site_schema(), FakeSubmitter())


def test_add_get_discard():
    registry = SessionRegistry()
    session = _session()
    session_id = registry.add(session)
    assert registry.get(session_id) is session
    registry.discard(session_id)
    assert registry.get(session_id) is None
    assert len(registry) == 0


def test_oldest_evicted_at_capacity():
    registry = SessionRegistry(max_sessions=2)
    first = registry.add(_session())
    second = registry.add(_session())
    third = registry.add(_session())
    assert registry.get(first) is None
    assert registry.get(second) is not None
    assert registry.get(third) is not None
    assert len(registry) == 2
