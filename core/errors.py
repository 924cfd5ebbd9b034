# ============================================================================
# ERROR TAXONOMY
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Foundation - Typed exceptions for all layers
# PURPOSE: Validation, referential and persistence errors
# CREATED: 02 OCT 2026
# ============================================================================
"""
Error Taxonomy

    TraceabilityError
    ├── ValidationError            malformed input, never persisted (400)
    │   ├── PayloadValidationError
    │   └── GraphDepthExceededError
    ├── ReferentialError           bad reference to another entity
    │   ├── NotFoundError          (404)
    │   ├── CycleError             link would close a cycle (409)
    │   └── InvalidActorError      actorRef is not a user/organization (400)
    └── PersistenceError           storage failure, the only retryable class (500)

Lookup misses (no emission factor) and duplicate deliveries are outcomes,
not exceptions.
"""

from typing import Any, List, Optional, Sequence


class TraceabilityError(Exception):
    """Base exception for the traceability core."""

    retryable: bool = False


class ValidationError(TraceabilityError):
    """Raised when input fails validation; names the offending field."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        self.field = field
        self.value = value
        super().__init__(message)


class PayloadValidationError(ValidationError):
    """Raised when an event payload does not match its event type's shape."""

    def __init__(self, event_type: str, fields: Sequence[str], message: Optional[str] = None):
        self.event_type = event_type
        self.fields: List[str] = list(fields)
        super().__init__(
            message or f"Invalid {event_type} payload: {', '.join(self.fields)}",
            field=self.fields[0] if self.fields else "payload",
        )


class GraphDepthExceededError(ValidationError):
    """Raised when a provenance walk exceeds the configured depth bound."""

    def __init__(self, vti_id: str, max_depth: int):
        self.vti_id = vti_id
        self.max_depth = max_depth
        super().__init__(
            f"Provenance graph below {vti_id} exceeds max depth {max_depth}",
            field="linkedVtis",
            value=vti_id,
        )


class ReferentialError(TraceabilityError):
    """Raised when a reference to another entity is invalid."""

    def __init__(self, message: str, reference: Optional[str] = None):
        self.reference = reference
        super().__init__(message)


class NotFoundError(ReferentialError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: str, field: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        self.field = field
        super().__init__(f"{entity} not found: {entity_id}", reference=entity_id)


class CycleError(ReferentialError):
    """Raised when linking would make the VTI graph cyclic."""

    def __init__(self, vti_id: str, path: Sequence[str]):
        self.vti_id = vti_id
        self.path: List[str] = list(path)
        super().__init__(
            f"Linking would create a cycle through {vti_id}: {' -> '.join(self.path)}",
            reference=vti_id,
        )


class InvalidActorError(ReferentialError):
    """Raised when an event's actorRef does not resolve to a user or organization."""

    def __init__(self, actor_ref: str, actor_type: str):
        self.actor_ref = actor_ref
        self.actor_type = actor_type
        super().__init__(
            f"Actor {actor_ref} is a {actor_type} VTI; expected user or organization",
            reference=actor_ref,
        )


class PersistenceError(TraceabilityError):
    """Raised when the backing store fails. Safe to retry."""

    retryable = True

    def __init__(self, message: str, operation: Optional[str] = None, entity_id: Optional[str] = None):
        self.operation = operation
        self.entity_id = entity_id
        super().__init__(message)


__all__ = [
    "TraceabilityError",
    "ValidationError",
    "PayloadValidationError",
    "GraphDepthExceededError",
    "ReferentialError",
    "NotFoundError",
    "CycleError",
    "InvalidActorError",
    "PersistenceError",
]
