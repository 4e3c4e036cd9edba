"""Unit tests for checkout state-machine guardrails."""

import pytest

from flavourhub.common.state_machine import validate_transition


def test_valid_transition():
    """Sanity check: a legal transition should pass."""

    validate_transition("INITIALIZED", "VERIFYING")


def test_reverify_after_ambiguous_is_allowed():
    validate_transition("AMBIGUOUS", "VERIFYING")
    validate_transition("REJECTED", "VERIFYING")


def test_invalid_transition():
    """Skipping verification must raise to protect reconciliation correctness."""

    with pytest.raises(ValueError):
        validate_transition("INITIALIZED", "SETTLED")


def test_settled_is_terminal():
    with pytest.raises(ValueError):
        validate_transition("SETTLED", "VERIFYING")
