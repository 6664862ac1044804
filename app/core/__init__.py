"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the domain apps (members, directory,
store, payments). Nothing in here knows about orders or settlement.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError, NotFoundError, ConflictError, ExternalServiceError

Helpers (import from core.helpers):
    - round_half_up_div: Integer division rounded half-up
    - short_reference: Human-friendly short form of an identifier

Views (import from core.views):
    - health_check: Liveness/readiness endpoint
"""
