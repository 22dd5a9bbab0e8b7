import enum
from typing import Iterable, Union
from loginguard.core.errors import InvalidIdentifierType


class IdentifierType(str, enum.Enum):
    EMAIL = "email"
    USERNAME = "username"
    USER_ID = "user_id"
    IP = "ip"
    FINGERPRINT = "fingerprint"
    SESSION = "session"
    API_KEY = "api_key"


class Severity(enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


ATTEMPT_IDENTIFIER_TYPES = frozenset({IdentifierType.EMAIL, IdentifierType.USERNAME, IdentifierType.IP})
LOCK_IDENTIFIER_TYPES = frozenset({IdentifierType.EMAIL, IdentifierType.USERNAME, IdentifierType.USER_ID})
BLOCK_IDENTIFIER_TYPES = frozenset({
    IdentifierType.IP,
    IdentifierType.EMAIL,
    IdentifierType.USER_ID,
    IdentifierType.FINGERPRINT,
})
CHALLENGE_IDENTIFIER_TYPES = frozenset({IdentifierType.IP, IdentifierType.EMAIL, IdentifierType.SESSION})
OVERRIDE_IDENTIFIER_TYPES = frozenset({IdentifierType.IP, IdentifierType.USER_ID, IdentifierType.API_KEY})


def coerce_identifier_type(
    value: Union[str, IdentifierType],
    allowed: Iterable[IdentifierType]
) -> IdentifierType:
    allowed = frozenset(allowed)
    try:
        identifier_type = IdentifierType(value)
    except ValueError:
        raise InvalidIdentifierType(value, allowed) from None
    if identifier_type not in allowed:
        raise InvalidIdentifierType(value, allowed)
    return identifier_type


def coerce_severity(value: Union[str, Severity]) -> Severity:
    if isinstance(value, Severity):
        return value
    return Severity(str(value).lower())


def check_constraint_sql(column: str, allowed: Iterable[IdentifierType]) -> str:
    values = ", ".join(f"'{t.value}'" for t in sorted(allowed, key=lambda t: t.value))
    return f"{column} IN ({values})"
