class ServiceError(Exception):
    """Base error raised by services; the app turns it into a JSON response."""
    status_code = 400

    def __init__(self, message, status_code=None, **payload):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        data = {"error": self.message}
        data.update(self.payload)
        return data


class ValidationFailed(ServiceError):
    status_code = 400


class AuthenticationRequired(ServiceError):
    status_code = 401


class PaymentRequired(ServiceError):
    status_code = 402


class Forbidden(ServiceError):
    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class Conflict(ServiceError):
    status_code = 409


class InsufficientFunds(ServiceError):
    status_code = 400
