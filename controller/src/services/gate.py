"""
Confirmation gate for the destroy pipeline.
"""

from controller.src.errors import ConfirmationMismatch
from controller.src.models.step import TriggerEvent, TriggerKind

CONFIRMATION_SENTINEL = "destroy"
DEFAULT_CONFIRMATION = "no"

def verify_confirmation(trigger: TriggerEvent) -> str:
    """
    Pass only when the dispatch input is exactly "destroy".
    The match is case-sensitive and the input is not trimmed.
    """
    if trigger.kind != TriggerKind.MANUAL_DISPATCH:
        raise ConfirmationMismatch(
            f"Destroy requires a manual dispatch, got {trigger.kind.value}"
        )

    confirmation = trigger.confirmation
    if confirmation is None:
        confirmation = DEFAULT_CONFIRMATION

    if confirmation != CONFIRMATION_SENTINEL:
        raise ConfirmationMismatch(
            f"Confirmation failed: expected '{CONFIRMATION_SENTINEL}', got '{confirmation}'. "
            "No resources were touched."
        )

    return confirmation
