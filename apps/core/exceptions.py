"""
Error taxonomy shared by the rentals and ledger services.

ValidationRejected subclasses ValueError so API handlers that already map
ValueError to HTTP 400 keep working.
"""


class ValidationRejected(ValueError):
    """A business rule rejected the request. Shown to the user as-is, never retried."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class OverpaymentConfirmationRequired(ValidationRejected):
    """
    A payment batch pays more than the outstanding balance.
    Carries the computed split so the caller can ask the user to confirm.
    """

    def __init__(self, batch):
        super().__init__(
            f"Payment exceeds the outstanding balance by {batch.total_overpaid}. "
            "Confirm to record the excess as overpaid."
        )
        self.batch = batch


class ReferenceCollision(Exception):
    """An allocated internal reference was already taken when written."""

    def __init__(self, reference: str):
        super().__init__(f"Internal reference {reference} is already in use")
        self.reference = reference


class StaleSnapshotConflict(Exception):
    """A booking passed validation but overlaps another booking at write time."""

    def __init__(self, message: str = "Booking conflict, please retry"):
        super().__init__(message)
