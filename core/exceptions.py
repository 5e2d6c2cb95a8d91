"""
Exception types shared by the service layer and the exception handlers in main.py.
"""

from fastapi import HTTPException
from starlette import status


class AuthError(HTTPException):
    """
    HTTPException carrying a machine-readable error code.

    Rendered as {"detail": ..., "code": ...} so clients can branch on the
    code while the message stays uniform for every root cause.
    """

    def __init__(self, status_code: int, detail: str, code: str, headers: dict | None = None):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.code = code


class OAuthTokenError(Exception):
    """
    Error raised by the PKCE token endpoint, rendered in OAuth2 format.
    """

    def __init__(self, error: str, description: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(description)
        self.error = error
        self.description = description
        self.status_code = status_code


# Uniform messages, one per failure class
INVALID_CREDENTIALS = "Invalid email or password."
INVALID_TOKEN = "Could not validate credentials."
INVALID_REFRESH_TOKEN = "Invalid refresh token."
NOT_APPROVED = "Account pending approval."


def invalid_credentials() -> AuthError:
    return AuthError(status.HTTP_401_UNAUTHORIZED, INVALID_CREDENTIALS, "invalid_credentials")


def invalid_token() -> AuthError:
    return AuthError(status.HTTP_401_UNAUTHORIZED, INVALID_TOKEN, "invalid_token",
                     headers={"WWW-Authenticate": "Bearer"})


def not_approved() -> AuthError:
    return AuthError(status.HTTP_403_FORBIDDEN, NOT_APPROVED, "account_not_approved")
