"""Auth and session exceptions.

Every failure here is a client error surfaced as JSON by the handler
registered in ``main.py``; none of them should take the process down.
"""


class AuthException(Exception):
    """Base auth exception with HTTP status."""

    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidCredentials(AuthException):
    """Wrong password or unknown email. Deliberately generic."""

    status_code = 401

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class InvalidToken(AuthException):
    """Bad signature, malformed token or wrong type discriminator."""

    status_code = 401

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class TokenExpired(InvalidToken):
    def __init__(self, message: str = "Token expired"):
        super().__init__(message)


class SessionRevoked(AuthException):
    """A refresh token whose hash no longer matches the stored session."""

    status_code = 401

    def __init__(self, message: str = "Session expired"):
        super().__init__(message)


class UserNotFound(AuthException):
    status_code = 404

    def __init__(self, message: str = "User not found"):
        super().__init__(message)
