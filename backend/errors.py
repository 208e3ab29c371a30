class PlantKeeperError(Exception):
    """Base for errors that map onto an HTTP response."""
    status_code = 500
    message = "internal"

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_dict(self):
        return {"error": self.message}


class ValidationError(PlantKeeperError):
    status_code = 400
    message = "invalid input"


class Unauthorized(PlantKeeperError):
    status_code = 401
    message = "unauthorized"


class InvalidCredentials(Unauthorized):
    message = "invalid credentials"


class NotFound(PlantKeeperError):
    # Also raised for records owned by someone else.
    status_code = 404
    message = "not found"


class Conflict(PlantKeeperError):
    status_code = 409
    message = "conflict"


class Internal(PlantKeeperError):
    pass
