from typing import Dict, List, Optional


class ValidationError(Exception):
    """Malformed input. Carries field-level messages for the caller."""

    def __init__(self, errors: List[Dict[str, str]], message: str = "Invalid data"):
        super().__init__(message)
        self.message = message
        self.errors = errors

    @classmethod
    def for_field(cls, field: str, message: str, entity: Optional[str] = None):
        title = f"Invalid {entity} data" if entity else "Invalid data"
        return cls([{"field": field, "message": message}], message=title)


class NotFoundError(Exception):
    """Missing row, or a row owned by another user. Both read the same."""

    def __init__(self, entity: str, entity_id: Optional[int] = None):
        super().__init__(f"{entity.capitalize()} not found")
        self.entity = entity
        self.entity_id = entity_id

    @property
    def detail(self) -> str:
        return f"{self.entity.capitalize()} not found"
