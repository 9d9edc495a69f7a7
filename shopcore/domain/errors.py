# shopcore/domain/errors.py
"""
Service-level errors.

Every failure a caller can act on is a ServiceError subclass carrying a
stable machine code and the HTTP status the routers translate it to.
"""


class ServiceError(Exception):
    code = "internal_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class InvalidRequest(ServiceError):
    code = "invalid_request"
    status_code = 400


class NotFound(ServiceError):
    code = "not_found"
    status_code = 404


class Conflict(ServiceError):
    code = "conflict"
    status_code = 409


class InsufficientInventory(ServiceError):
    code = "insufficient_inventory"
    status_code = 409

    def __init__(self, sku: str):
        super().__init__(f"Insufficient inventory for SKU: {sku}")
        self.sku = sku

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "sku": self.sku}


class Ineligible(ServiceError):
    code = "discount_invalid"
    status_code = 400


class SignatureInvalid(ServiceError):
    code = "webhook_signature_invalid"
    status_code = 400


class ProcessorError(ServiceError):
    code = "stripe_error"
    status_code = 502
