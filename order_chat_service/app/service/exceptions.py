"""
Custom exceptions for the Order Chat service.

Every exception carries a human-readable message that is safe to return to
clients, except the InfrastructureError family whose `public_message` is used
instead of the internal detail.
"""
from typing import Optional


class BaseOrderServiceError(Exception):
    """Base class for exceptions in this module."""
    status_code: int = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(BaseOrderServiceError):
    """Client-correctable failure: bad enum value, malformed payload, unmet precondition."""
    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class InvalidOrderStateError(ValidationError):
    """Raised when an action is attempted on an order in the wrong status."""
    def __init__(self, order_id: str, current_state: str, attempted_action: str):
        self.order_id = order_id
        self.current_state = current_state
        self.attempted_action = attempted_action
        super().__init__(f"Cannot {attempted_action} for order '{order_id}' in status '{current_state}'.", field="status")


class OrderAlreadyFinalizedError(ValidationError):
    status_code = 409

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order '{order_id}' has already been finalized.")


class FileValidationError(ValidationError):
    """Raised when an uploaded or inbound chat file is rejected."""
    def __init__(self, message: str):
        super().__init__(message, field="file")


class NotFoundError(BaseOrderServiceError):
    status_code = 404


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order '{order_id}' not found.")


class FinalizedOrderNotFoundError(NotFoundError):
    def __init__(self, finalized_id: str):
        self.finalized_id = finalized_id
        super().__init__(f"Finalized order '{finalized_id}' not found.")


class OrderDocumentNotFoundError(NotFoundError):
    def __init__(self, order_id: str, document_id: str):
        self.order_id = order_id
        self.document_id = document_id
        super().__init__(f"Document with ID '{document_id}' not found in order '{order_id}'.")


class ChatMessageNotFoundError(NotFoundError):
    def __init__(self, message_id: str):
        self.message_id = message_id
        super().__init__(f"Chat message '{message_id}' not found.")


class ServiceNotFoundError(NotFoundError):
    def __init__(self, service_id: str):
        self.service_id = service_id
        super().__init__(f"Service '{service_id}' not found.")


class AuthenticationError(BaseOrderServiceError):
    status_code = 401


class AuthorizationError(BaseOrderServiceError):
    status_code = 403


class InfrastructureError(BaseOrderServiceError):
    """Document store, object storage or collaborator failure. Detail stays in the logs."""
    status_code = 502
    public_message = "Internal server error"


class ObjectStorageError(InfrastructureError):
    public_message = "File upload failed"


class FinalizationError(InfrastructureError):
    public_message = "Order finalization failed"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Finalization transaction for order '{order_id}' was rolled back.")


class CatalogUnavailableError(InfrastructureError):
    public_message = "Service catalog unavailable"


class ConfigurationError(BaseOrderServiceError):
    """Raised when a configuration issue is detected."""
    status_code = 500


class KafkaProducerError(BaseOrderServiceError):
    """Raised when there's an issue with Kafka message production."""
    status_code = 502
