"""Tests for CredentialStore."""

import threading
from datetime import UTC, datetime

import pytest

from tokenrelay.auth.exceptions import InvalidConfigurationError, MissingCredentialError
from tokenrelay.auth.models import Credential, DefaultSettings
from tokenrelay.auth.store import CredentialStore


@pytest.fixture
def store():
    return CredentialStore(
        DefaultSettings(server_url="https://idp.example.com", connection="db")
    )


class TestUpsert:
    """Tests for inserting and merging credentials."""

    def test_insert_fills_defaults(self, store):
        """Should fill unset fields from the defaults on insert."""
        stored = store.upsert(Credential(client_id="abc", username="svc", password="pw"))

        assert stored.server_url == "https://idp.example.com"
        assert stored.connection == "db"
        assert stored.username == "svc"
        assert store.get("abc") == stored

    def test_update_overlays_supplied_fields(self, store):
        """Should overlay supplied fields and keep the rest."""
        store.upsert(Credential(client_id="abc", username="svc", password="pw"))
        stored = store.upsert(Credential(client_id="abc", password="new-pw"))

        assert stored.username == "svc"
        assert stored.password == "new-pw"

    def test_update_keeps_bearer(self, store):
        """Should keep the cached bearer and refresh time across updates."""
        store.upsert(Credential(client_id="abc"))
        now = datetime.now(UTC)
        store.record_refresh("abc", "tok", now)

        stored = store.upsert(Credential(client_id="abc", username="svc"))

        assert stored.bearer == "tok"
        assert stored.last_refresh == now

    def test_update_can_change_server_url(self, store):
        """Should let a challenge realm replace the default server URL."""
        store.upsert(Credential(client_id="abc"))
        stored = store.upsert(Credential(client_id="abc", server_url="https://other.example.com"))
        assert stored.server_url == "https://other.example.com"

    @pytest.mark.parametrize("client_id", [None, "", "  "])
    def test_rejects_missing_client_id(self, store, client_id):
        """Should refuse credentials without a client id."""
        with pytest.raises(InvalidConfigurationError, match="client_id"):
            store.upsert(Credential(client_id=client_id))

    def test_concurrent_upserts_keep_one_entry(self, store):
        """Should leave exactly one entry per client id under concurrent writes."""
        threads = [
            threading.Thread(
                target=store.upsert,
                args=(Credential(client_id="abc", username=f"user{i}"),),
            )
            for i in range(20)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(store) == 1
        assert store.get("abc").username.startswith("user")


class TestLookup:
    def test_get_unknown_returns_none(self, store):
        assert store.get("missing") is None
        assert store.get(None) is None

    def test_contains_and_len(self, store):
        store.upsert(Credential(client_id="a"))
        store.upsert(Credential(client_id="b"))

        assert "a" in store
        assert "c" not in store
        assert len(store) == 2
        assert sorted(store.client_ids()) == ["a", "b"]


class TestRecordRefresh:
    def test_updates_bearer_and_timestamp(self, store):
        store.upsert(Credential(client_id="abc"))
        now = datetime.now(UTC)

        updated = store.record_refresh("abc", "tok", now)

        assert updated.bearer == "tok"
        assert updated.last_refresh == now
        assert store.get("abc").bearer == "tok"

    def test_previous_snapshot_unchanged(self, store):
        before = store.upsert(Credential(client_id="abc"))
        store.record_refresh("abc", "tok", datetime.now(UTC))
        assert before.bearer is None

    def test_unknown_client_raises(self, store):
        with pytest.raises(MissingCredentialError, match="missing information"):
            store.record_refresh("missing", "tok", datetime.now(UTC))


class TestRoutes:
    """Tests for host to client id routing."""

    def test_record_and_lookup(self, store):
        store.record_route("orders.example.com", "abc")
        assert store.route_for("orders.example.com") == "abc"

    def test_last_write_wins(self, store):
        """Should replace the route when a host challenges for another client."""
        store.record_route("orders.example.com", "abc")
        store.record_route("orders.example.com", "xyz")

        assert store.route_for("orders.example.com") == "xyz"
        assert store.routes() == {"orders.example.com": "xyz"}

    def test_unknown_host(self, store):
        assert store.route_for("nowhere.example.com") is None
        assert store.route_for(None) is None

    def test_ignores_empty_values(self, store):
        store.record_route("", "abc")
        store.record_route("host", "")
        assert store.routes() == {}
