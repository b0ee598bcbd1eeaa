"""
Custom business exceptions.

WHAT: Domain-specific exceptions that map to HTTP status codes
WHY: Consistent error handling across agents and API endpoints
HOW: Custom exception classes with error codes and messages
"""

from typing import Optional, Any


class BusinessException(Exception):
    """Base class for business logic exceptions."""
    
    def __init__(self, message: str, code: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class ConfigurationError(BusinessException):
    """Raised when a required setting (identity, credentials) is missing at startup."""
    
    def __init__(self, setting_name: str, reason: str = "is required"):
        super().__init__(
            message=f"Configuration error: {setting_name} {reason}",
            code="CONFIGURATION_ERROR",
            details={"setting": setting_name}
        )


class StoreUnavailableError(BusinessException):
    """Raised when the persistence backend cannot be read or written."""
    
    def __init__(self, operation: str, key: str, cause: Optional[Exception] = None):
        super().__init__(
            message=f"Store {operation} failed for {key}: {cause}",
            code="STORE_UNAVAILABLE",
            details={"operation": operation, "key": key}
        )


class ConversationNotFoundException(BusinessException):
    """Raised when no live conversation exists for a counterparty."""
    
    def __init__(self, counterparty_id: str):
        super().__init__(
            message=f"Conversation not found: {counterparty_id}",
            code="CONVERSATION_NOT_FOUND",
            details={"counterparty_id": counterparty_id}
        )


class AgreementNotFoundException(BusinessException):
    """Raised when a payment agreement id is unknown to the API."""
    
    def __init__(self, agreement_id: str):
        super().__init__(
            message=f"Payment agreement not found: {agreement_id}",
            code="AGREEMENT_NOT_FOUND",
            details={"agreement_id": agreement_id}
        )


class InvalidAgentTypeException(BusinessException):
    """Raised when an endpoint is called with an unknown agent type."""
    
    def __init__(self, agent_type: str):
        super().__init__(
            message=f"Unknown agent type: {agent_type}",
            code="INVALID_AGENT_TYPE",
            details={"agent_type": agent_type, "allowed": ["farm", "garden"]}
        )
