"""
Tests des adaptateurs Supabase (VariantStore, EventLog) avec un client mocké
"""

from datetime import datetime
from unittest.mock import MagicMock, call, patch

import pytest
import pytz

from pricing_experiments.config import Settings
from pricing_experiments.interfaces import data_access
from pricing_experiments.interfaces.data_access import VariantStore, fetch_all_pages, get_supabase_client
from pricing_experiments.interfaces.event_log import EXPERIMENT_STARTED, EventLog, parse_timestamp

SINCE = datetime(2025, 3, 1, tzinfo=pytz.UTC)


class TestGetSupabaseClient:
    """Tests pour get_supabase_client."""

    @patch.object(data_access, "_supabase_client", None)
    def test_missing_credentials(self):
        with pytest.raises(RuntimeError, match="SUPABASE_URL"):
            get_supabase_client(Settings(supabase_url="", supabase_key=""))

    @patch.object(data_access, "_supabase_client", None)
    @patch.object(data_access, "create_client")
    def test_client_is_created_once(self, mock_create_client):
        settings = Settings(supabase_url="https://mock.supabase.co", supabase_key="key")

        first = get_supabase_client(settings)
        second = get_supabase_client(settings)

        assert first is second
        mock_create_client.assert_called_once_with("https://mock.supabase.co", "key")


class TestFetchAllPages:
    """Tests pour fetch_all_pages."""

    def test_reads_until_short_page(self):
        query = MagicMock()
        query.range.return_value = query
        query.execute.side_effect = [
            MagicMock(data=[{"id": 1}, {"id": 2}]),
            MagicMock(data=[{"id": 3}]),
        ]

        rows = fetch_all_pages(lambda: query, page_size=2)

        assert [r["id"] for r in rows] == [1, 2, 3]
        assert query.range.call_args_list[0].args == (0, 1)
        assert query.range.call_args_list[1].args == (2, 3)

    def test_limit_stops_paging(self):
        query = MagicMock()
        query.range.return_value = query
        query.execute.return_value = MagicMock(data=[{"id": 1}, {"id": 2}])

        rows = fetch_all_pages(lambda: query, limit=2, page_size=5)

        assert len(rows) == 2
        query.range.assert_called_once_with(0, 1)

    def test_invalid_response(self):
        query = MagicMock()
        query.range.return_value = query
        query.execute.return_value = object()

        with pytest.raises(RuntimeError, match="pas d'attribut 'data'"):
            fetch_all_pages(lambda: query)


class TestVariantStore:
    """Tests pour VariantStore."""

    def test_order_lines_are_flattened(self, mock_supabase_client):
        mock_supabase_client.query.execute.return_value.data = [
            {
                "variant_id": "var-1",
                "order_id": "ord-1",
                "quantity": "3",
                "total_price": "59.97",
                "orders": {"id": "ord-1", "store_id": "store-1", "status": "delivered",
                           "created_at": "2025-03-02T10:00:00Z"},
            },
            {"variant_id": None, "order_id": "ord-2", "quantity": 1, "total_price": 5},
        ]
        store = VariantStore(mock_supabase_client, "store-1")

        lines = store.list_order_lines(since=SINCE)

        assert lines == [
            {
                "variant_id": "var-1",
                "order_id": "ord-1",
                "quantity": 3,
                "total_price": 59.97,
                "created_at": "2025-03-02T10:00:00Z",
            }
        ]
        mock_supabase_client.table.assert_called_with("order_items")
        mock_supabase_client.query.eq.assert_any_call("orders.store_id", "store-1")
        mock_supabase_client.query.gte.assert_called_with("orders.created_at", SINCE.isoformat())

    def test_paged_order_lines_use_stable_sort(self, mock_supabase_client):
        """Plus de 1000 lignes : chaque page est triée sur les mêmes colonnes."""
        full_page = MagicMock(data=[
            {"variant_id": "var-1", "order_id": f"ord-{i}", "quantity": 1, "total_price": 10.0}
            for i in range(1000)
        ])
        mock_supabase_client.query.execute.side_effect = [full_page, MagicMock(data=[])]
        store = VariantStore(mock_supabase_client, "store-1")

        lines = store.list_order_lines(since=SINCE)

        assert len(lines) == 1000
        assert mock_supabase_client.query.range.call_args_list == [call(0, 999), call(1000, 1999)]
        assert mock_supabase_client.query.order.call_args_list == [
            call("order_id"), call("variant_id"),
            call("order_id"), call("variant_id"),
        ]

    def test_empty_variant_filter_short_circuits(self, mock_supabase_client):
        store = VariantStore(mock_supabase_client, "store-1")

        assert store.list_order_lines(since=SINCE, variant_ids=[]) == []
        mock_supabase_client.table.assert_not_called()

    def test_sellable_variants_are_mapped(self, mock_supabase_client):
        mock_supabase_client.query.execute.return_value.data = [
            {
                "id": "var-1",
                "title": "Large",
                "price": "20.00",
                "compare_at_price": None,
                "inventory_quantity": 12,
                "reserved_quantity": None,
                "products": {"id": "prod-1", "name": "Mug"},
            }
        ]
        store = VariantStore(mock_supabase_client, "store-1")

        rows = store.get_sellable_variants(["var-1"], 24)

        assert rows == [
            {
                "variant_id": "var-1",
                "product_id": "prod-1",
                "product_name": "Mug",
                "variant_title": "Large",
                "price": 20.0,
                "compare_at_price": None,
                "inventory_quantity": 12,
                "reserved_quantity": 0,
            }
        ]
        mock_supabase_client.query.limit.assert_called_with(24)

    def test_recent_sellable_variants_respect_limit(self, mock_supabase_client):
        mock_supabase_client.query.execute.return_value.data = [
            {"id": "prod-2", "product_variants": [{"id": "var-2a"}, {"id": "var-2b"}]},
            {"id": "prod-1", "product_variants": [{"id": "var-1a"}]},
        ]
        store = VariantStore(mock_supabase_client, "store-1")

        assert store.list_recent_sellable_variant_ids(2) == ["var-2a", "var-2b"]
        mock_supabase_client.query.order.assert_called_with("created_at", desc=True)

    def test_variant_ids_in_scope(self, mock_supabase_client):
        mock_supabase_client.query.execute.return_value.data = [{"id": "var-1"}]
        store = VariantStore(mock_supabase_client, "store-1")

        assert store.get_variant_ids_in_scope(["var-1", "var-2", "var-1"]) == {"var-1"}
        mock_supabase_client.query.in_.assert_called_with("id", ["var-1", "var-2"])

    def test_update_formats_prices(self, mock_supabase_client):
        store = VariantStore(mock_supabase_client, "store-1")

        store.update_variant_price("var-1", 28.99, 30.0)
        mock_supabase_client.query.update.assert_called_with({"price": "28.99", "compare_at_price": "30.00"})
        mock_supabase_client.query.eq.assert_called_with("id", "var-1")

        store.update_variant_price("var-1", 21.99, None)
        mock_supabase_client.query.update.assert_called_with({"price": "21.99", "compare_at_price": None})


class TestEventLog:
    """Tests pour EventLog."""

    def test_append(self, mock_supabase_client):
        event_log = EventLog(mock_supabase_client, "store-1")

        event_log.append(EXPERIMENT_STARTED, {"experimentId": "exp-1"}, user_id="user-1")

        mock_supabase_client.table.assert_called_with("analytics_events")
        mock_supabase_client.query.insert.assert_called_once_with(
            {
                "store_id": "store-1",
                "event_type": EXPERIMENT_STARTED,
                "user_id": "user-1",
                "properties": {"experimentId": "exp-1"},
            }
        )

    def test_list_recent_by_types(self, mock_supabase_client):
        mock_supabase_client.query.execute.return_value.data = [
            {"event_type": EXPERIMENT_STARTED, "properties": {"experimentId": "exp-1"},
             "created_at": "2025-03-01T12:00:00+00:00"},
            {"event_type": EXPERIMENT_STARTED, "properties": None, "created_at": "garbage"},
        ]
        event_log = EventLog(mock_supabase_client, "store-1")

        records = event_log.list_recent_by_types([EXPERIMENT_STARTED], 50)

        assert records[0].properties == {"experimentId": "exp-1"}
        assert records[0].created_at == datetime(2025, 3, 1, 12, tzinfo=pytz.UTC)
        assert records[1].properties == {}
        assert records[1].created_at is None
        assert mock_supabase_client.query.order.call_args_list == [call("created_at", desc=True), call("id", desc=True)]
        mock_supabase_client.query.range.assert_called_with(0, 49)

    def test_zero_limit_skips_query(self, mock_supabase_client):
        assert EventLog(mock_supabase_client, "store-1").list_recent_by_types([EXPERIMENT_STARTED], 0) == []
        mock_supabase_client.table.assert_not_called()


class TestParseTimestamp:
    def test_zulu_suffix(self):
        assert parse_timestamp("2025-03-01T12:00:00.000Z") == datetime(2025, 3, 1, 12, tzinfo=pytz.UTC)

    @pytest.mark.parametrize("value", [None, "", "yesterday", 12])
    def test_unparseable(self, value):
        assert parse_timestamp(value) is None
