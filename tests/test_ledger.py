"""Order ledger: append-only, reference-keyed, safe under concurrent writers."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from flavourhub.services.orders.ledger import InMemoryOrderLedger, Order, OrderTrust


def test_append_and_list_keep_insertion_order(ledger):
    first = ledger.append(Order.create(OrderTrust.CLIENT_REPORTED, {"customer": "Ama"}))
    second = ledger.append(Order.create(OrderTrust.GATEWAY_VERIFIED, reference="FH_1"))

    assert [o.id for o in ledger.list()] == [first.id, second.id]
    assert ledger.find_by_reference("FH_1") is second
    assert ledger.find_by_reference("FH_missing") is None


def test_duplicate_reference_is_refused(ledger):
    ledger.append(Order.create(OrderTrust.GATEWAY_VERIFIED, reference="FH_1"))
    with pytest.raises(ValueError):
        ledger.append(Order.create(OrderTrust.GATEWAY_VERIFIED, reference="FH_1"))


def test_caller_fields_cannot_override_owned_fields():
    order = Order.create(
        OrderTrust.CLIENT_REPORTED,
        {"id": "evil", "status": "refunded", "amount": 1, "items": [{"name": "Jollof"}]},
    )
    payload = order.to_dict()

    assert payload["id"] == order.id != "evil"
    assert payload["status"] == "paid"
    assert payload["amount"] is None
    assert payload["trust"] == "client_reported"
    assert payload["items"] == [{"name": "Jollof"}]
    assert payload["id"].startswith("ORD-")


def test_details_are_copied_on_create():
    details = {"items": [{"name": "Waakye"}]}
    order = Order.create(OrderTrust.CLIENT_REPORTED, details)
    details["items"].append({"name": "Kelewele"})

    assert order.to_dict()["items"] == [{"name": "Waakye"}]


def test_append_if_absent_builds_once(ledger):
    built = []

    def build():
        order = Order.create(OrderTrust.GATEWAY_VERIFIED, reference="FH_1")
        built.append(order)
        return order

    first, created_first = ledger.append_if_absent("FH_1", build)
    second, created_second = ledger.append_if_absent("FH_1", build)

    assert created_first and not created_second
    assert first is second
    assert len(built) == 1


def test_concurrent_appends_lose_nothing():
    ledger = InMemoryOrderLedger()
    with ThreadPoolExecutor(max_workers=16) as pool:
        list(
            pool.map(
                lambda i: ledger.append(
                    Order.create(OrderTrust.GATEWAY_VERIFIED, reference=f"FH_{i}")
                ),
                range(200),
            )
        )

    assert len(ledger) == 200
    assert len({o.id for o in ledger.list()}) == 200


def test_stored_orders_cannot_be_mutated(ledger):
    ledger.append(
        Order.create(OrderTrust.CLIENT_REPORTED, {"customer": {"name": "Ama"}, "items": [{"name": "Fufu"}]})
    )
    stored = ledger.list()[0]

    with pytest.raises(TypeError):
        stored.details["customer"] = "someone else"
    with pytest.raises(TypeError):
        stored.details["customer"]["name"] = "Kofi"
    with pytest.raises(AttributeError):
        stored.details["items"].append({"name": "Banku"})

    exported = stored.to_dict()
    exported["items"].append({"name": "Banku"})
    exported["customer"]["name"] = "Kofi"
    assert ledger.list()[0].to_dict()["items"] == [{"name": "Fufu"}]
    assert ledger.list()[0].to_dict()["customer"] == {"name": "Ama"}
