"""Payment reference generation."""

import re
from datetime import datetime, timezone
from urllib.parse import quote

import pytest

from flavourhub.common.errors import GenerationError
from flavourhub.services.payments.reference import ReferenceGenerator


def test_reference_shape_and_uniqueness():
    generator = ReferenceGenerator("FH")
    issued = {generator.generate() for _ in range(500)}

    assert len(issued) == 500
    for reference in issued:
        assert re.fullmatch(r"FH_\d{8}_[0-9a-f]{16}", reference)
        assert quote(reference, safe="") == reference


def test_reference_carries_issue_date():
    generator = ReferenceGenerator(
        "FH", clock=lambda: datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)
    )
    assert generator.generate().startswith("FH_20261018_")


def test_randomness_failure_raises_generation_error():
    def broken(_: int) -> str:
        raise OSError("no entropy")

    with pytest.raises(GenerationError):
        ReferenceGenerator("FH", token_source=broken).generate()


def test_repeated_value_is_refused():
    generator = ReferenceGenerator("FH", token_source=lambda n: "00" * n)
    generator.generate()
    with pytest.raises(GenerationError):
        generator.generate()


def test_prefix_must_be_url_safe():
    with pytest.raises(ValueError):
        ReferenceGenerator("F H")


def test_released_reference_is_forgotten():
    generator = ReferenceGenerator("FH", token_source=lambda n: "00" * n)
    reference = generator.generate()
    generator.release(reference)

    assert generator.generate() == reference
