"""
Tests for the client-side reconciler and its Socket.IO wiring.
"""
from unittest.mock import MagicMock

import pytest

from backend.client.live import attach
from backend.client.reconciler import ConnectionState, InventoryReconciler
from backend.core.broadcast import INVENTORY_EVENT
from backend.core.normalize import ProductStatus

TODAY = "2024-05-01"


def rows(*names):
    return [{"id": f"ID-{i}", "name": name, "qty": 10 * i} for i, name in enumerate(names)]


@pytest.fixture()
def reconciler():
    return InventoryReconciler(today=TODAY)


class TestApplySnapshot:
    def test_replaces_records_wholesale(self, reconciler):
        assert reconciler.apply_snapshot(rows("a", "b", "c", "d", "e"))
        assert len(reconciler.records) == 5

        assert reconciler.apply_snapshot(rows("x", "y", "z"))
        assert [r.name for r in reconciler.records] == ["x", "y", "z"]
        assert reconciler.updates_applied == 2

    def test_renormalizes_raw_rows(self, reconciler):
        reconciler.apply_snapshot([{"Product": "Gadget", "Stock": "75", "Price": "$12.50"}])
        record = reconciler.records[0]
        assert record.name == "Gadget"
        assert record.quantity == 75
        assert record.price == 0
        assert record.status is ProductStatus.IN_STOCK
        assert record.date_added == TODAY

    def test_empty_snapshot_keeps_state(self, reconciler):
        reconciler.apply_snapshot(rows("a", "b"))
        assert reconciler.apply_snapshot([]) is False
        assert [r.name for r in reconciler.records] == ["a", "b"]

    @pytest.mark.parametrize("payload", [None, "rows", 42, {"name": "Bolt"}])
    def test_non_list_payload_rejected(self, reconciler, payload):
        reconciler.apply_snapshot(rows("a"))
        assert reconciler.apply_snapshot(payload) is False
        assert [r.name for r in reconciler.records] == ["a"]

    def test_non_mapping_row_rejects_whole_snapshot(self, reconciler):
        reconciler.apply_snapshot(rows("a"))
        assert reconciler.apply_snapshot([{"name": "b"}, "junk"]) is False
        assert [r.name for r in reconciler.records] == ["a"]

    def test_duplicate_delivery_is_idempotent(self, reconciler):
        payload = rows("a", "b")
        reconciler.apply_snapshot(payload)
        first = reconciler.records
        reconciler.apply_snapshot(payload)
        assert reconciler.records == first

    def test_get_by_id(self, reconciler):
        reconciler.apply_snapshot(rows("a", "b"))
        assert reconciler.get("ID-1").name == "b"
        assert reconciler.get("missing") is None

    def test_records_is_a_copy(self, reconciler):
        reconciler.apply_snapshot(rows("a"))
        reconciler.records.clear()
        assert len(reconciler.records) == 1


class TestConnectionState:
    def test_starts_disconnected(self, reconciler):
        assert reconciler.state is ConnectionState.DISCONNECTED
        assert not reconciler.is_synced

    def test_lifecycle(self, reconciler):
        reconciler.on_connect()
        assert reconciler.is_synced

        reconciler.on_disconnect("transport close")
        assert reconciler.state is ConnectionState.DISCONNECTED

        reconciler.on_connect_error("refused")
        assert reconciler.state is ConnectionState.ERROR

        reconciler.on_connect()
        assert reconciler.state is ConnectionState.CONNECTED

    def test_state_change_keeps_records(self, reconciler):
        reconciler.apply_snapshot(rows("a"))
        reconciler.on_disconnect()
        assert len(reconciler.records) == 1

    def test_invalid_payload_does_not_change_state(self, reconciler):
        reconciler.on_connect()
        reconciler.apply_snapshot("nonsense")
        assert reconciler.state is ConnectionState.CONNECTED


class TestListener:
    def test_listener_called_on_update_and_state(self):
        seen = []
        reconciler = InventoryReconciler(today=TODAY, listener=lambda r: seen.append(r.state))
        reconciler.on_connect()
        reconciler.apply_snapshot(rows("a"))
        assert seen == [ConnectionState.CONNECTED, ConnectionState.CONNECTED]

    def test_listener_not_called_for_rejected_snapshot(self):
        listener = MagicMock()
        reconciler = InventoryReconciler(today=TODAY, listener=listener)
        reconciler.apply_snapshot([])
        listener.assert_not_called()

    def test_listener_errors_swallowed(self):
        def broken(_):
            raise RuntimeError("render failed")

        reconciler = InventoryReconciler(today=TODAY, listener=broken)
        assert reconciler.apply_snapshot(rows("a")) is True
        assert len(reconciler.records) == 1


class TestAttach:
    def test_registers_all_handlers(self, reconciler):
        client = MagicMock()
        assert attach(client, reconciler) is client

        client.on.assert_any_call('connect', reconciler.on_connect)
        client.on.assert_any_call('connect_error', reconciler.on_connect_error)
        client.on.assert_any_call('disconnect', reconciler.on_disconnect)
        client.on.assert_any_call(INVENTORY_EVENT, reconciler.apply_snapshot)
