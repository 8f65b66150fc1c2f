from fastapi import HTTPException, status


class ServiceError(HTTPException):
    """Base for errors raised by the service layer.

    These are HTTPExceptions so the global handler renders them with their
    status code, while callers inside the process can still branch on
    ``code``.
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_SERVER_ERROR"
    default_message = "An unexpected error occurred"

    def __init__(self, message: str = None):
        super().__init__(status_code=self.status_code, detail=message or self.default_message)

    @property
    def message(self) -> str:
        return self.detail


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"
    default_message = "Resource conflict"


class BadRequestError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "BAD_REQUEST"
    default_message = "Bad request"
