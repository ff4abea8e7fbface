class GeolocationError(Exception):
    """Base exception for Warehouse Geolocation System errors."""

    def __init__(self, message=None, code=None, details=None):
        """Initialize the exception.

        Args:
            message: Error message
            code: Error code
            details: Additional error details
        """
        self.message = message or "An error occurred in the Warehouse Geolocation System"
        self.code = code
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        """String representation of the error."""
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self):
        """Convert the exception to a dictionary."""
        error_dict = {
            'error': self.__class__.__name__,
            'message': self.message,
        }

        if self.code:
            error_dict['code'] = self.code

        if self.details:
            error_dict['details'] = self.details

        return error_dict


class ConfigError(GeolocationError):
    """Exception raised for configuration errors."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Configuration error"
        super().__init__(message, code, details)


class StorageError(GeolocationError):
    """Exception raised when the underlying data store fails."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Storage error"
        super().__init__(message, code, details)


class ValidationError(GeolocationError):
    """Exception raised for malformed coordinates, codes or names."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Validation error"
        super().__init__(message, code, details)


class NotFoundError(GeolocationError):
    """Exception raised when a referenced SKU, warehouse or assignment is absent."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Resource not found"
        super().__init__(message, code, details)


class ConflictError(GeolocationError):
    """Exception raised when a slot is already occupied or a code/name is taken."""

    def __init__(self, message=None, code=None, details=None):
        message = message or "Conflict"
        super().__init__(message, code, details)
