class AgroLoopError(Exception):
    """Base class for every error raised by the AgroLoop services."""

    status_code = 500


class ValidationError(AgroLoopError):
    status_code = 400

    def __init__(self, field, message):
        super().__init__(message)
        self.field = field
        self.message = message


class StorageError(AgroLoopError):
    """A read or write against the key-value store failed."""


class AuthError(AgroLoopError):
    status_code = 401


class NotSignedIn(AuthError):
    def __init__(self):
        super().__init__("No user signed in")


class VerificationFailed(AgroLoopError):
    status_code = 400

    def __init__(self, code):
        super().__init__(f"Verification code {code!r} is invalid, expired or already used")
        self.code = code


class RewardNotFound(AgroLoopError):
    status_code = 404

    def __init__(self, reward_id):
        super().__init__(f"Unknown reward: {reward_id}")
        self.reward_id = reward_id


class InsufficientCredits(AgroLoopError):
    status_code = 409

    def __init__(self, balance, required):
        super().__init__(f"Not enough eco-credits: have {balance}, need {required}")
        self.balance = balance
        self.required = required
