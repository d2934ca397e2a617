# v0_mcp/oauth/errors.py
from fastapi import HTTPException, status
from typing import Optional


class OAuthError(HTTPException):
    """Base class for OAuth 2.1 errors rendered as flat RFC 6749 JSON bodies."""

    def __init__(
        self,
        status_code: int,
        error: str,
        error_description: Optional[str] = None,
        headers: Optional[dict] = None,
    ):
        self.error = error
        self.error_description = error_description

        detail = {"error": error}
        if error_description:
            detail["error_description"] = error_description

        super().__init__(status_code=status_code, detail=detail, headers=headers)

    def to_body(self) -> dict:
        return dict(self.detail)


class InvalidRequestError(OAuthError):
    """
    The request is missing a required parameter or is otherwise malformed.
    (RFC 6749 - Section 5.2)
    """

    def __init__(self, error_description: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="invalid_request",
            error_description=error_description,
        )


class InvalidGrantError(OAuthError):
    """
    The authorization code or refresh token is invalid, expired, revoked,
    does not match the redirection URI, or was issued to another client.
    (RFC 6749 - Section 5.2)
    """

    def __init__(self, error_description: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="invalid_grant",
            error_description=error_description,
        )


class UnsupportedGrantTypeError(OAuthError):
    """(RFC 6749 - Section 5.2)"""

    def __init__(self, error_description: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="unsupported_grant_type",
            error_description=error_description,
        )


class InvalidRedirectUriError(OAuthError):
    """Dynamic registration rejected the redirect URIs. (RFC 7591 - Section 3.2.2)"""

    def __init__(self, error_description: Optional[str] = "At least one redirect_uri is required"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="invalid_redirect_uri",
            error_description=error_description,
        )


class ServerError(OAuthError):
    """The authorization server encountered an unexpected condition."""

    def __init__(self, error_description: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error="server_error",
            error_description=error_description,
        )
