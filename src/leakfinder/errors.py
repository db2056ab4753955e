from __future__ import annotations


class NotFound(LookupError):
    pass


class InvalidTransition(Exception):
    def __init__(self, entity: str, current: str, requested: str) -> None:
        super().__init__(f"Invalid {entity} status transition: {current} -> {requested}")
        self.entity = entity
        self.current = current
        self.requested = requested


class QuotaExceeded(Exception):
    pass


class PremiumRequired(Exception):
    pass
