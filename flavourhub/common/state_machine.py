"""Checkout attempt state machine enforced by the reconciliation orchestrator."""

REQUESTED = "REQUESTED"
INITIALIZED = "INITIALIZED"
VERIFYING = "VERIFYING"
SETTLED = "SETTLED"
REJECTED = "REJECTED"
AMBIGUOUS = "AMBIGUOUS"

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    REQUESTED: {INITIALIZED},
    INITIALIZED: {VERIFYING},
    VERIFYING: {SETTLED, REJECTED, AMBIGUOUS},
    # A caller may re-poll after a non-paid or uncertain answer.
    REJECTED: {VERIFYING},
    AMBIGUOUS: {VERIFYING},
    SETTLED: set(),
}


def validate_transition(current: str, new: str) -> None:
    """Raise when a transition is not allowed by the state machine."""

    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise ValueError(f"Invalid transition: {current} -> {new}")
