"""Typed failures raised by the rent ledger."""

from typing import Optional


class RentTrackerError(Exception):
    """Base class for all rent tracker failures."""


class ValidationError(RentTrackerError, ValueError):
    """Invalid input to a mutation. Nothing was written."""

    def __init__(self, errors: list[dict]):
        self.errors = errors
        messages = "; ".join(e["message"] for e in errors) or "Invalid input"
        super().__init__(messages)

    @property
    def codes(self) -> list[str]:
        return [e.get("code", "") for e in self.errors]


class NotFoundError(RentTrackerError, LookupError):
    """The repository has no record with the requested id."""

    def __init__(self, entity: str, entity_id: Optional[int]):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} {entity_id} not found")
