# --- Custom Service Layer Exception Classes ---

class ServiceError(Exception):
    """General exception class for the service layer."""
    pass

class NotFoundError(ServiceError):
    """The referenced record does not exist."""
    pass

class ConflictError(ServiceError):
    """A unique field (email, roll number, setting key) is already taken."""
    pass

class AuthorizationError(ServiceError):
    """Exception class for authorization-related errors."""
    pass
