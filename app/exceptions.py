from fastapi import HTTPException, status    


class TimerSessionNotFound(Exception):
    """
    Raised when a timer session does not exist, belongs to another user,
    or is not in the status the requested transition needs.
    """

    def __init__(self, session_id: str, message: str = "Timer session not found"):
        self.session_id = session_id
        self.message = message
        super().__init__(f"{message}: {session_id}")


def get_user_exception():
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    return credentials_exception


def get_forbidden_exception(detail: str = "You are not authorized to perform this action"):
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def get_unknown_entity_exception(detail: str = "Entity not found"):
    entity_exception = HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=detail
    )
    return entity_exception


def get_internal_server_exception():
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal Server Error"
    )
