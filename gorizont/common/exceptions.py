from fastapi import HTTPException, status


class GorizontException(HTTPException):
    code = "error"

    def __init__(self, detail: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(status_code=status_code, detail=detail)


class UnauthorizedError(GorizontException):
    code = "unauthenticated"

    def __init__(self, detail: str = "Please log in to continue"):
        super().__init__(detail=detail, status_code=status.HTTP_401_UNAUTHORIZED)


class NotFoundError(GorizontException):
    code = "not_found"

    def __init__(self, resource: str, resource_id: str | None = None):
        detail = f"{resource} not found"
        if resource_id:
            detail = f"{resource} '{resource_id}' not found"
        super().__init__(detail=detail, status_code=status.HTTP_404_NOT_FOUND)


class PermissionDeniedError(GorizontException):
    code = "forbidden"

    def __init__(self, detail: str = "You do not have permission to perform this action"):
        super().__init__(detail=detail, status_code=status.HTTP_403_FORBIDDEN)


class BadRequestError(GorizontException):
    code = "bad_request"

    def __init__(self, detail: str):
        super().__init__(detail=detail, status_code=status.HTTP_400_BAD_REQUEST)


class InvalidStateError(BadRequestError):
    """A precondition on the current state of a record is not met."""

    code = "invalid_state"


class ConflictError(GorizontException):
    code = "conflict"

    def __init__(self, detail: str):
        super().__init__(detail=detail, status_code=status.HTTP_409_CONFLICT)
