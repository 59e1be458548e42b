from abc import ABC


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the user. These errors should not contain any
    sensitive information.
    """

    code = "BAD_REQUEST"


class NotFoundError(UserError):
    """Raised when a requested resource is not found."""

    code = "NOT_FOUND"

    def __init__(self, message: str = "Document not found") -> None:
        super().__init__(message)


class AuthenticationError(UserError):
    """Raised when authentication fails."""

    code = "NOT_AUTHORIZED"

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class AccessDeniedError(UserError):
    """Raised when a user tries to access a resource they do not have permission for."""

    code = "ACCESS_DENIED"


class ValidationError(UserError):
    """Raised when user input fails validation."""

    code = "BAD_REQUEST"


class ConflictError(UserError):
    """Raised when a unique value is already taken."""

    code = "CONFLICT"


class SignInRequiredError(AuthenticationError):
    """Raised when the access token is missing, unverifiable or has no live session."""

    code = "SIGN_IN_REQUIRED"

    def __init__(self, message: str = "Sign in required") -> None:
        super().__init__(message)


class SessionNotFoundError(SignInRequiredError):
    """Raised by the session store when no live ledger row matches a token."""


class AccountNotFoundError(NotFoundError):
    code = "ACCOUNT_NOT_FOUND"

    def __init__(self, message: str = "Account not found") -> None:
        super().__init__(message)


class DuplicatedEmailError(ConflictError):
    code = "DUPLICATED_EMAIL"

    def __init__(self, message: str = "Email is already in use") -> None:
        super().__init__(message)


class DuplicatedNicknameError(ConflictError):
    code = "DUPLICATED_NICKNAME"

    def __init__(self, message: str = "Nickname is already in use") -> None:
        super().__init__(message)


class OtpNotFoundError(NotFoundError):
    """Raised when no OTP has been issued for the account."""

    code = "OTP_NOT_FOUND"

    def __init__(self, message: str = "OTP not found, request a new one") -> None:
        super().__init__(message)


class ExpiredOtpError(AuthenticationError):
    code = "EXPIRED_OTP"

    def __init__(self, message: str = "OTP has expired, request a new one") -> None:
        super().__init__(message)


class InvalidOtpError(AuthenticationError):
    code = "INVALID_OTP"

    def __init__(self, message: str = "OTP does not match") -> None:
        super().__init__(message)


class InvalidCursorError(ValidationError):
    """Raised when a pagination cursor cannot be decoded."""

    code = "INVALID_CURSOR"

    def __init__(self, message: str = "Invalid pagination cursor") -> None:
        super().__init__(message)


class NotVerifiedOAuthAccountError(ValidationError):
    code = "NOT_VERIFIED_OAUTH_ACCOUNT"

    def __init__(self, message: str = "OAuth account email is not verified") -> None:
        super().__init__(message)


class InvalidTokenPayloadError(ValidationError):
    code = "INVALID_TOKEN_PAYLOAD"

    def __init__(self, message: str = "OAuth token payload is missing required fields") -> None:
        super().__init__(message)


class UnsupportedFileTypeError(ValidationError):
    code = "INVALID_FILE_TYPE"

    def __init__(self, message: str = "File type is not allowed") -> None:
        super().__init__(message)


class FileTooLargeError(ValidationError):
    code = "FILE_TOO_LARGE"

    def __init__(self, message: str = "File is too large") -> None:
        super().__init__(message)


class RangeNotSatisfiableError(UserError):
    """Raised when a requested byte range starts beyond the end of a file."""

    code = "RANGE_NOT_SATISFIABLE"

    def __init__(self, size: int) -> None:
        super().__init__("Requested range not satisfiable")
        self.size = size


class TransientError(Exception):
    """Raised when an upstream dependency timed out or is unreachable.

    Not a UserError: callers may retry, and the message is not shown to the user.
    """
