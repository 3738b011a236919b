"""
Exceptions raised by the service layer
"""


class EshopError(Exception):
    """Base exception for the API"""
    pass


class ServiceError(EshopError):
    """A business rule rejected the request; message is shown to the client"""

    def __init__(self, message: str, data=None, status_code: int = 200):
        super().__init__(message)
        self.message = message
        self.data = [] if data is None else data
        self.status_code = status_code


class ValidationError(ServiceError):
    """Custom exception for request validation errors"""

    def __init__(self, message: str, data=None):
        super().__init__(message, data=data, status_code=200)


class AuthError(ServiceError):
    """Token missing or rejected"""

    def __init__(self, message: str):
        super().__init__(message, status_code=401)


class PaymentGatewayError(EshopError):
    """PhonePe returned an error or could not be reached"""

    def __init__(self, message: str, code: str = None, status_code: int = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
