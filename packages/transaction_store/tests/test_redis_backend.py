import json
from unittest.mock import MagicMock

import pytest

from packages.transaction_store.backends import RedisBackend


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def backend(client):
    return RedisBackend(client, prefix="test")


def test_put_if_absent_uses_set_nx(backend, client):
    client.set.return_value = True

    assert backend.put_if_absent({"id": "t1", "amount": -4.5}) is True

    client.set.assert_called_once_with("test:txn:t1", json.dumps({"id": "t1", "amount": -4.5}), nx=True)
    client.sadd.assert_called_once_with("test:txn_ids", "t1")


def test_put_if_absent_existing_id(backend, client):
    client.set.return_value = None

    assert backend.put_if_absent({"id": "t1"}) is False
    client.sadd.assert_not_called()


def test_load_all_skips_missing_and_corrupt(backend, client):
    client.smembers.return_value = {"a", "b", "c"}
    client.mget.return_value = [json.dumps({"id": "a"}), None, "{not json"]

    records = backend.load_all()

    assert records == [{"id": "a"}]
    client.mget.assert_called_once_with(["test:txn:a", "test:txn:b", "test:txn:c"])


def test_update_merges_fields(backend, client):
    client.get.return_value = json.dumps({"id": "t1", "amount": -4.5, "name": "Coffee"})

    backend.update("t1", {"amount": -5.0})

    key, payload = client.set.call_args[0]
    assert key == "test:txn:t1"
    assert json.loads(payload) == {"id": "t1", "amount": -5.0, "name": "Coffee"}


def test_delete(backend, client):
    client.delete.return_value = 2

    assert backend.delete(["a", "b"]) == 2
    client.delete.assert_called_once_with("test:txn:a", "test:txn:b")
    client.srem.assert_called_once_with("test:txn_ids", "a", "b")


def test_delete_nothing(backend, client):
    assert backend.delete([]) == 0
    client.delete.assert_not_called()


def test_cursor_keys(backend, client):
    client.get.return_value = "cursor-1"

    backend.put_cursor("plaid", "cursor-2")
    assert backend.get_cursor("plaid") == "cursor-1"

    client.set.assert_called_once_with("test:cursor:plaid", "cursor-2")
    client.get.assert_called_once_with("test:cursor:plaid")


def test_ping(backend, client):
    client.ping.return_value = True
    assert backend.ping() is True
