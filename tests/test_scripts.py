"""Operator script helpers."""

from scripts.verify_payment import verify_url


def test_verify_url_escapes_reference():
    assert (
        verify_url("http://localhost:3000/", "FH/odd ref?x=1")
        == "http://localhost:3000/api/payments/verify/FH%2Fodd%20ref%3Fx%3D1"
    )
    assert verify_url("http://h", "FH_20261018_ab") == "http://h/api/payments/verify/FH_20261018_ab"
