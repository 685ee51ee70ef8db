from unittest.mock import MagicMock

import pytest

from storefront.api_client import ApiClient, ApiError
from storefront.models import OrderRecord
from storefront.order_watch import OrderStatusWatcher


@pytest.fixture
def api():
    return MagicMock(spec=ApiClient)


@pytest.fixture
def watcher(storage, api, bus):
    return OrderStatusWatcher(storage, api, bus)


def _order(status, order_id=5):
    return OrderRecord(id=order_id, status=status, total_price=10000)


class TestOrderStatusWatcher:
    def test_first_check_only_remembers(self, watcher, api, storage, login):
        login()
        api.my_orders.return_value = [_order("menunggu_konfirmasi")]

        assert watcher.check() is False
        assert watcher.has_new_update is False
        assert storage.get("lastOrderStatus") == "menunggu_konfirmasi"
        api.my_orders.assert_called_once_with(per_page=1)

    def test_status_change_is_announced(self, watcher, api, bus, login):
        login()
        seen = []
        bus.subscribe("order-status-changed", lambda: seen.append(1))

        api.my_orders.return_value = [_order("menunggu_konfirmasi")]
        watcher.check()
        api.my_orders.return_value = [_order("diproses")]

        assert watcher.check() is True
        assert watcher.has_new_update is True
        assert watcher.latest_status == "diproses"
        assert seen == [1]

    def test_same_status_is_quiet(self, watcher, api, storage, login):
        login()
        storage.set("lastOrderStatus", "selesai")
        api.my_orders.return_value = [_order("selesai")]

        assert watcher.check() is False

    def test_acknowledge(self, watcher, api, storage, login):
        login()
        storage.set("lastOrderStatus", "diproses")
        api.my_orders.return_value = [_order("selesai")]
        watcher.check()

        watcher.acknowledge()

        assert watcher.has_new_update is False

    def test_anonymous_resets(self, watcher, api, storage, login, logout):
        login()
        storage.set("lastOrderStatus", "diproses")
        api.my_orders.return_value = [_order("selesai")]
        watcher.check()
        logout()

        assert watcher.check() is False
        assert watcher.has_new_update is False
        assert watcher.latest_status is None
        assert api.my_orders.call_count == 1

    @pytest.mark.parametrize("orders", [None, []])
    def test_nothing_to_compare(self, watcher, api, storage, login, orders):
        login()
        storage.set("lastOrderStatus", "diproses")
        api.my_orders.return_value = orders

        assert watcher.check() is False
        assert storage.get("lastOrderStatus") == "diproses"

    def test_api_error_is_logged_not_raised(self, watcher, api, login):
        login()
        api.my_orders.side_effect = ApiError("boom", 500)

        assert watcher.check() is False

    def test_fetch_latest_leaves_state_alone(self, watcher, api, storage, bus, login):
        login()
        storage.set("lastOrderStatus", "diproses")
        api.my_orders.return_value = [_order("selesai")]
        seen = []
        bus.subscribe("order-status-changed", lambda: seen.append(1))

        latest = watcher.fetch_latest()

        assert latest.status == "selesai"
        assert storage.get("lastOrderStatus") == "diproses"
        assert watcher.latest_status is None
        assert seen == []

        assert watcher.record(latest) is True
        assert seen == [1]

    def test_record_after_logout_resets(self, watcher, api, login, logout):
        login()
        api.my_orders.return_value = [_order("selesai")]
        latest = watcher.fetch_latest()
        logout()

        assert watcher.record(latest) is False
        assert watcher.latest_status is None
