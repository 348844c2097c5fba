"""
Tests for `repositories/visitor_repository.py` against a fake Supabase client.

The fake records the query chain and answers from a list of rows, which is
enough to check the conditional update used for optimistic concurrency.
"""

from __future__ import annotations

from dataclasses import replace
from types import SimpleNamespace

import pytest
from postgrest.exceptions import APIError

from conftest import T0, make_profile
from domain.visitor import Visitor, VisitorState
from repositories.interfaces import DuplicateVisitor, VersionConflict
from repositories.visitor_repository import SupabaseVisitorRepository
from repositories.visitor_rows import visitor_to_row


class FakeQuery:
    def __init__(self, table):
        self.table = table
        self.filters = []
        self.update_payload = None
        self.insert_payload = None

    def select(self, _columns):
        return self

    def limit(self, _n):
        return self

    def order(self, _column):
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def update(self, payload):
        self.update_payload = payload
        return self

    def insert(self, payload):
        self.insert_payload = payload
        return self

    def execute(self):
        if self.insert_payload is not None:
            self.table.rows.append(dict(self.insert_payload))
            return SimpleNamespace(data=[self.insert_payload], error=None)

        matched = [row for row in self.table.rows if all(f(row) for f in self.filters)]
        if self.update_payload is not None:
            for row in matched:
                row.update(self.update_payload)
        return SimpleNamespace(data=[dict(row) for row in matched], error=None)


class FakeTable:
    def __init__(self):
        self.rows = []


class FakeClient:
    def __init__(self):
        self.tables = {}

    def table(self, name):
        return FakeQuery(self.tables.setdefault(name, FakeTable()))


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def repository(client):
    return SupabaseVisitorRepository(client=client)


def _visitor(visitor_id="visitor-1"):
    return Visitor.new(visitor_id, make_profile(), created_at=T0)


def test_insert_then_get(repository):
    repository.insert(_visitor())

    loaded = repository.get("visitor-1")

    assert loaded == _visitor()
    assert repository.get("missing") is None


def test_save_bumps_version(repository):
    repository.insert(_visitor())
    current = repository.get("visitor-1")

    stored = repository.save(replace(current, archive_reason=None), expected_version=0)

    assert stored.version == 1
    assert repository.get("visitor-1").version == 1


def test_stale_save_is_a_version_conflict(repository, client):
    repository.insert(_visitor())
    current = repository.get("visitor-1")
    repository.save(current, expected_version=0)

    with pytest.raises(VersionConflict):
        repository.save(current, expected_version=0)

    assert client.tables["visitors"].rows[0]["version"] == 1


def test_list_by_states(repository, client):
    repository.insert(_visitor("visitor-1"))
    row = visitor_to_row(_visitor("visitor-2"))
    row.update(state="archived", archived=True, version=0)
    client.tables["visitors"].rows.append(row)

    archived = repository.list_by_states([VisitorState.ARCHIVED])

    assert [v.visitor_id for v in archived] == ["visitor-2"]


def test_storage_error_is_runtime_error(repository, client):
    class BrokenQuery(FakeQuery):
        def execute(self):
            return SimpleNamespace(data=None, error="permission denied for table visitors")

    client.table = lambda name: BrokenQuery(FakeTable())

    with pytest.raises(RuntimeError, match="get visitor"):
        repository.get("visitor-1")


def test_duplicate_insert_is_reported(repository, client):
    class UniqueViolationQuery(FakeQuery):
        def execute(self):
            raise APIError(
                {
                    "message": 'duplicate key value violates unique constraint "visitors_pkey"',
                    "code": "23505",
                    "hint": None,
                    "details": None,
                }
            )

    client.table = lambda name: UniqueViolationQuery(FakeTable())

    with pytest.raises(DuplicateVisitor):
        repository.insert(_visitor())
