"""Errors raised by the credential service.

Each carries the HTTP status the endpoint layer answers with and a message
that is safe to show the caller.
"""


class CredentialError(Exception):
    status = 500
    message = "Server error"

    def __init__(self, message=None):
        if message:
            self.message = message
        super().__init__(self.message)


class ValidationError(CredentialError):
    status = 400
    message = "Missing fields"


class AuthError(CredentialError):
    # Same text for unknown user and wrong password.
    status = 401
    message = "Invalid credentials"


class NotFound(CredentialError):
    status = 404
    message = "User not found"


class Conflict(CredentialError):
    status = 409
    message = "User already exists"
