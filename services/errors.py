# services/errors.py


class RecordNotFoundError(LookupError):
    """Raised when a cycle, day, medication or record id does not exist"""


class InvalidOperationError(ValueError):
    """Raised when a request is well-formed but not allowed in the current state"""


class AuthError(Exception):
    """Base class for failures surfaced to the user as rejection messages"""


class DuplicateUsernameError(AuthError):
    def __init__(self, message: str = "Username already exists"):
        super().__init__(message)


class DuplicateEmailError(AuthError):
    def __init__(self, message: str = "Email already exists"):
        super().__init__(message)


class InvalidCredentialsError(AuthError):
    def __init__(self, message: str = "Invalid username or password"):
        super().__init__(message)


class UserNotFoundError(AuthError, LookupError):
    def __init__(self, message: str = "User not found"):
        super().__init__(message)
