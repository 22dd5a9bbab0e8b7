import enum


class LoginGuardError(Exception):
    pass


class StoreUnavailable(LoginGuardError):
    """The backing store could not serve a read or accept a write.

    Gating reads translate this into "allowed"; writes are logged and dropped.
    """


class InvalidIdentifierType(LoginGuardError, ValueError):
    def __init__(self, value, allowed):
        self.value = getattr(value, "value", value)
        self.allowed = sorted(a.value for a in allowed)
        super().__init__(
            f"Invalid identifier type '{self.value}'; expected one of {', '.join(self.allowed)}"
        )


class ConcurrentLockConflict(LoginGuardError):
    pass


class ChallengeFailure(str, enum.Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ALREADY_USED = "already_used"
    ATTEMPTS_EXCEEDED = "attempts_exceeded"
    INVALID_PROOF = "invalid_proof"
    PROVIDER_ERROR = "provider_error"
