"""
Form error taxonomy.

All form errors inherit from FormError.
"""


class FormError(Exception):
    """Base class for form element errors."""


class FieldNotFound(FormError, KeyError):
    """Raised when a named form field does not exist."""

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"Could not find field named '{field_name}'.")

    def __str__(self) -> str:
        return self.args[0]


class NonceRefreshFailed(FormError):
    """Raised when a fresh copy of a nonce-protected form could not be obtained."""

    def __init__(self, form_id: str, reason: str = 'matching form not found'):
        self.form_id = form_id
        self.reason = reason
        super().__init__(f"Could not refresh nonce for {form_id}: {reason}")
