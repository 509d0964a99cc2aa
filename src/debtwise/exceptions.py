"""Exception hierarchy for the debt engine."""


class DebtWiseError(Exception):
    """Base exception for all debt engine errors."""


class ValidationError(DebtWiseError):
    """Raised when input is rejected before any write happens."""


class OverpaymentError(ValidationError):
    """Raised when a repayment would drive a balance below zero."""


class NotFoundError(DebtWiseError):
    """Raised when a referenced debt or expense does not exist."""


class TransactionError(DebtWiseError):
    """Raised when a multi-table mutation fails and was rolled back."""


class ComputationError(DebtWiseError):
    """Raised when a schedule cannot be computed from the given terms."""
