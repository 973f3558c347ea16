"""Error taxonomy for the shop workflows.

Workflows raise; the terminal is the one place that catches these and turns
them into console messages and re-prompts.
"""


class ShopError(Exception):
    """Base class for every shop-level failure."""


class ValidationError(ShopError, ValueError):
    """Operator input failed a length, format or type rule."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class InvalidSelectionError(ValidationError):
    """Menu index outside the listed rows."""

    def __init__(self, message: str):
        super().__init__("selection", message)


class VinMismatchError(ValidationError):
    """The VIN typed for confirmation differs from the resolved car."""

    def __init__(self, expected: str, typed: str):
        super().__init__("vin", f"'{typed}' does not match the selected car '{expected}'")
        self.expected = expected
        self.typed = typed


class ExistenceConflict(ShopError):
    """A caller-supplied key is already in use."""

    def __init__(self, kind: str, key):
        super().__init__(f"{kind} {key} already exists")
        self.kind = kind
        self.key = key


class NotFoundError(ShopError, LookupError):
    """A referenced row does not exist."""


class NoOpenRequestError(NotFoundError):
    """No open service request for the active customer and car."""


class WorkflowStateError(ShopError, RuntimeError):
    """A workflow step was called out of order."""


class BillError(ShopError):
    """A bill PDF could not be rendered or written."""
