import threading

import pytest

from ordering.errors import Forbidden
from ordering.principal import Permission, Principal, Role
from ordering.utils.locks import KeyedLocks, coupon_key, order_key


class TestKeyedLocks:
    def test_keys(self):
        assert order_key("abc") == "order:abc"
        assert coupon_key("save5") == "coupon:SAVE5"

    def test_empty_keys_are_skipped(self):
        locks = KeyedLocks()
        with locks.hold(None, "", order_key("1")):
            assert len(locks) == 1

    def test_released_keys_are_forgotten(self):
        locks = KeyedLocks()
        for n in range(20):
            with locks.hold(order_key(n), coupon_key("save5")):
                assert len(locks) == 2
        assert len(locks) == 0

    def test_nested_holds_keep_the_key_until_the_outer_exits(self):
        locks = KeyedLocks()
        with locks.hold("a"):
            with locks.hold("a", "b"):
                assert len(locks) == 2
            assert len(locks) == 1
        assert len(locks) == 0

    def test_reentrant_for_the_same_thread(self):
        locks = KeyedLocks()
        with locks.hold("a"):
            with locks.hold("a", "b"):
                pass

    def test_excludes_other_threads(self):
        locks = KeyedLocks()
        entered = threading.Event()
        release = threading.Event()
        seen = []

        def holder():
            with locks.hold("order:1"):
                entered.set()
                release.wait(timeout=5)
                seen.append("holder")

        def contender():
            with locks.hold("order:1"):
                seen.append("contender")

        first = threading.Thread(target=holder)
        first.start()
        entered.wait(timeout=5)
        second = threading.Thread(target=contender)
        second.start()
        second.join(timeout=0.1)
        assert seen == []
        release.set()
        first.join(timeout=5)
        second.join(timeout=5)
        assert seen == ["holder", "contender"]


class TestPrincipal:
    def test_anonymous(self):
        principal = Principal.anonymous()
        assert principal.role == Role.ANONYMOUS
        assert not principal.is_customer
        assert not principal.owns("cust-001")

    def test_customer_owns_only_own_id(self):
        principal = Principal.customer("cust-001")
        assert principal.owns("cust-001")
        assert not principal.owns("cust-002")
        assert not principal.owns(None)
        assert not principal.can(Permission.MANAGE_ORDERS)

    def test_admin_permissions(self):
        limited = Principal.admin("a-1", permissions={Permission.VIEW_ANALYTICS})
        assert limited.can(Permission.VIEW_ANALYTICS)
        with pytest.raises(Forbidden):
            limited.require(Permission.MANAGE_COUPONS)
        Principal.admin("a-2").require(Permission.MANAGE_COUPONS)
