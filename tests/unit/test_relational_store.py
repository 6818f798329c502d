from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Optional

import pytest
from pydantic import BaseModel

from relstore.domain.mapping import TableMapping
from relstore.domain.models import BUILDING_MAPPING, Building
from relstore.errors import ConstraintViolation, SchemaMismatch
from relstore.store.abstract import RecordStore
from relstore.store.relational import RelationalStore


class _Ticket(BaseModel):
    id: Optional[int] = None
    title: str


class _KeyOnly(BaseModel):
    code: str


TICKET_MAPPING = TableMapping.for_model(_Ticket, table="ticket", primary_key="id", auto_key=True)


class _RecordingSession:
    def __init__(self, gateway: _RecordingGateway) -> None:
        self._gateway = gateway

    def _record(self, kind: str, query: Any, params: Any) -> None:
        self._gateway.calls.append((kind, query.as_string(None), params))
        if self._gateway.fail_with is not None:
            raise self._gateway.fail_with

    def execute(self, query, params=None) -> int:
        self._record("execute", query, params)
        if self._gateway.rowcounts:
            return self._gateway.rowcounts.pop(0)
        return 1

    def execute_many(self, query, params_seq) -> None:
        self._record("execute_many", query, list(params_seq))

    def fetch_all(self, query, params=None) -> list[dict[str, Any]]:
        self._record("fetch_all", query, params)
        return list(self._gateway.rows)

    def fetch_one(self, query, params=None) -> Optional[dict[str, Any]]:
        self._record("fetch_one", query, params)
        self._gateway.next_id += 1
        return {"id": self._gateway.next_id}


class _RecordingGateway:
    """Records statements per transaction; never touches a database."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, Any]] = []
        self.rows: list[dict[str, Any]] = []
        self.rowcounts: list[int] = []
        self.fail_with: Optional[Exception] = None
        self.next_id = 0
        self.transactions = 0
        self.committed = 0
        self.rolled_back = 0

    @contextmanager
    def transaction(self) -> Iterator[_RecordingSession]:
        self.transactions += 1
        try:
            yield _RecordingSession(self)
        except Exception:
            self.rolled_back += 1
            raise
        self.committed += 1


@pytest.fixture
def gateway() -> _RecordingGateway:
    return _RecordingGateway()


@pytest.fixture
def store(gateway: _RecordingGateway) -> RelationalStore[Building]:
    return RelationalStore(gateway, BUILDING_MAPPING)


def _buildings(count: int) -> list[Building]:
    return [
        Building(bin=f"OR13-{i}", identifier=f"Building {i}", property_id=i)
        for i in range(1, count + 1)
    ]


def test_store_satisfies_record_store_protocol(store: RelationalStore[Building]) -> None:
    assert isinstance(store, RecordStore)
    assert store.mapping is BUILDING_MAPPING


def test_add_inserts_all_columns(store, gateway) -> None:
    building = Building(bin="OR13-22", identifier="Building A", property_id=1)

    persisted = store.add(building)

    assert persisted is building
    assert gateway.calls == [
        (
            "execute_many",
            'INSERT INTO "public"."Building" ("BIN", "Identifier", "PropertyId") VALUES (%s, %s, %s)',
            [["OR13-22", "Building A", 1]],
        )
    ]
    assert gateway.committed == 1


def test_add_many_uses_one_transaction_in_order(store, gateway) -> None:
    batch = _buildings(10)

    persisted = store.add_many(batch)

    assert persisted == batch
    assert gateway.transactions == 1
    kind, _, params = gateway.calls[0]
    assert kind == "execute_many"
    assert [p[0] for p in params] == [f"OR13-{i}" for i in range(1, 11)]


def test_add_many_accepts_generators(store, gateway) -> None:
    store.add_many(b for b in _buildings(3))

    assert len(gateway.calls[0][2]) == 3


def test_empty_batches_touch_nothing(store, gateway) -> None:
    assert store.add_many([]) == []
    assert store.update_many([]) == 0
    assert store.delete_many([]) == 0
    assert gateway.transactions == 0


def test_add_failure_rolls_back_and_carries_context(store, gateway) -> None:
    gateway.fail_with = ConstraintViolation("duplicate key value")

    with pytest.raises(ConstraintViolation) as excinfo:
        store.add_many(_buildings(2))

    assert gateway.rolled_back == 1
    assert gateway.committed == 0
    assert excinfo.value.operation == "add"
    assert excinfo.value.table == "public.Building"
    assert excinfo.value.keys == ["OR13-1", "OR13-2"]
    assert "operation=add" in str(excinfo.value)


def test_update_sets_non_key_columns_by_key(store, gateway) -> None:
    building = Building(bin="OR13-55", identifier="Updated Building C", property_id=3)

    changed = store.update(building)

    assert changed == 1
    assert gateway.calls == [
        (
            "execute",
            'UPDATE "public"."Building" SET "Identifier" = %s, "PropertyId" = %s WHERE "BIN" = %s',
            ["Updated Building C", 3, "OR13-55"],
        )
    ]


def test_update_resolves_key_at_call_time(store, gateway) -> None:
    building = Building(bin="OR13-1", identifier="x")
    building.bin = "OR13-2"

    store.update(building)

    assert gateway.calls[0][2][-1] == "OR13-2"


def test_update_of_absent_key_reports_zero(store, gateway) -> None:
    gateway.rowcounts = [0]

    assert store.update(Building(bin="missing")) == 0
    assert gateway.committed == 1


def test_update_many_sums_changed_rows_in_one_transaction(store, gateway) -> None:
    gateway.rowcounts = [1, 0, 1]

    changed = store.update_many(_buildings(3))

    assert changed == 2
    assert gateway.transactions == 1
    assert [call[2][-1] for call in gateway.calls] == ["OR13-1", "OR13-2", "OR13-3"]


def test_update_with_only_key_columns_is_a_no_op(gateway) -> None:
    mapping = TableMapping.for_model(_KeyOnly, table="codes", primary_key="code")
    store = RelationalStore(gateway, mapping)

    assert store.update(_KeyOnly(code="a")) == 0
    assert gateway.transactions == 0


def test_delete_many_targets_keys_with_any(store, gateway) -> None:
    gateway.rowcounts = [5]

    deleted = store.delete_many(_buildings(5))

    assert deleted == 5
    assert gateway.calls == [
        (
            "execute",
            'DELETE FROM "public"."Building" WHERE "BIN" = ANY(%s)',
            [[f"OR13-{i}" for i in range(1, 6)]],
        )
    ]


def test_delete_of_absent_key_is_not_an_error(store, gateway) -> None:
    gateway.rowcounts = [0]

    assert store.delete(Building(bin="missing")) == 0


def test_delete_all_returns_count(store, gateway) -> None:
    gateway.rowcounts = [10]

    assert store.delete_all() == 10
    assert gateway.calls == [("execute", 'DELETE FROM "public"."Building"', None)]


def test_try_load_data_maps_rows_to_fresh_records(store, gateway) -> None:
    gateway.rows = [
        {"BIN": "OR13-1", "Identifier": "Building 1", "PropertyId": 1},
        {"BIN": "OR13-2", "Identifier": None, "PropertyId": None},
    ]

    first = store.try_load_data()
    second = store.try_load_data()

    assert [b.bin for b in first] == ["OR13-1", "OR13-2"]
    assert first == second
    assert first[0] is not second[0]
    assert gateway.calls[0][1] == (
        'SELECT "BIN", "Identifier", "PropertyId" FROM "public"."Building"'
    )


def test_try_load_data_on_empty_table(store, gateway) -> None:
    assert store.try_load_data() == []


def test_try_load_data_reports_unfit_rows(store, gateway) -> None:
    gateway.rows = [{"BIN": "OR13-1", "Identifier": "x", "PropertyId": "not a number"}]

    with pytest.raises(SchemaMismatch) as excinfo:
        store.try_load_data()

    assert excinfo.value.operation == "load"
    assert excinfo.value.keys == ["OR13-1"]


def test_auto_key_insert_returns_generated_keys(gateway) -> None:
    store = RelationalStore(gateway, TICKET_MAPPING)
    tickets = [_Ticket(title="a"), _Ticket(title="b")]

    persisted = store.add_many(tickets)

    assert [t.id for t in persisted] == [1, 2]
    assert [t.title for t in persisted] == ["a", "b"]
    assert tickets[0].id is None
    assert gateway.transactions == 1
    assert gateway.calls[0] == (
        "fetch_one",
        'INSERT INTO "public"."ticket" ("title") VALUES (%s) RETURNING "id"',
        ["a"],
    )
