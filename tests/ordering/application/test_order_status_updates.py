import pytest

from ordering.errors import Forbidden, InvalidTransition, NotFound
from ordering.principal import Permission, Principal
from ordering.realtime.hub import order_topic


class TestUpdateStatus:
    def test_admin_walks_the_happy_path(self, services, place, admin):
        order = place()
        for status in ("Preparing", "On The Way", "Delivered"):
            order = services.orders.update_status(admin, order.id, status)

        assert order.status == "Delivered"
        assert [e.status for e in order.timeline] == ["Pending", "Preparing", "On The Way", "Delivered"]
        assert order.actual_delivered_at is not None

    def test_note_is_recorded(self, services, place, admin):
        order = place()
        order = services.orders.update_status(admin, order.id, "Cancelled", note="Out of dough")
        assert order.timeline[-1].note == "Out of dough"

    def test_illegal_jump_is_rejected(self, services, place, admin):
        order = place()
        with pytest.raises(InvalidTransition) as exc:
            services.orders.update_status(admin, order.id, "Delivered")

        assert exc.value.messages == {"status": ["Cannot transition from Pending to Delivered"]}
        assert len(services.orders.get(admin, order.id).timeline) == 1

    def test_terminal_orders_stay_put(self, services, place, admin):
        order = place()
        services.orders.update_status(admin, order.id, "Cancelled")
        with pytest.raises(InvalidTransition):
            services.orders.update_status(admin, order.id, "Preparing")

    def test_customers_cannot_update(self, services, place, customer):
        order = place()
        with pytest.raises(Forbidden):
            services.orders.update_status(customer, order.id, "Preparing")

    def test_admin_needs_manage_orders(self, services, place):
        order = place()
        analyst = Principal.admin("analyst", permissions={Permission.VIEW_ANALYTICS})
        with pytest.raises(Forbidden):
            services.orders.update_status(analyst, order.id, "Preparing")

    def test_unknown_order(self, services, admin):
        with pytest.raises(NotFound):
            services.orders.update_status(admin, "missing", "Preparing")

    def test_order_locks_are_released_after_each_update(self, services, place, admin):
        for _ in range(20):
            services.orders.update_status(admin, place().id, "Cancelled")
        assert len(services.locks) == 0

    def test_order_followers_are_notified(self, services, place, admin, anonymous, listen):
        order = place()
        follower = listen(anonymous, order_topic(order.id))

        services.orders.update_status(admin, order.id, "Preparing", note="In the oven")

        [message] = follower.events("order-status-changed")
        assert message["topic"] == f"order:{order.id}"
        assert message["data"]["status"] == "Preparing"
        assert message["data"]["note"] == "In the oven"

    def test_rejected_update_is_not_broadcast(self, services, place, admin, anonymous, listen):
        order = place()
        follower = listen(anonymous, order_topic(order.id))
        with pytest.raises(InvalidTransition):
            services.orders.update_status(admin, order.id, "Delivered")
        assert follower.messages == []
