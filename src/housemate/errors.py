"""Exception types raised by the housemate core.

Only two conditions are failures:

- :class:`DataFetchError` — the storage layer could not answer a query.
- :class:`InvalidInputError` — a primary input record is malformed.

"Not enough history to judge" is *not* an exception; those paths return a
normal result tagged with :attr:`~housemate.models.ResultStatus.INSUFFICIENT_DATA`.
"""

from __future__ import annotations


class HousemateError(Exception):
    """Base exception for the housemate core."""


class DataFetchError(HousemateError):
    """An underlying storage query failed.

    Propagated to the caller unchanged; the core never retries.
    """


class InvalidInputError(HousemateError, ValueError):
    """A debt, obligation or settlement record failed validation.

    Attributes:
        errors: Human-readable validation messages (one per problem).
    """

    def __init__(self, errors: list[str] | str) -> None:
        if isinstance(errors, str):
            errors = [errors]
        self.errors: list[str] = list(errors)
        super().__init__(" ".join(self.errors))
