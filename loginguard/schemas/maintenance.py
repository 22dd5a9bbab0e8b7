from pydantic import BaseModel


class SweepReport(BaseModel):
    cleared_attempts_deleted: int = 0
    patterns_archived: int = 0
    old_attempts_deleted: int = 0
    locks_expired: int = 0
    blocks_expired: int = 0
    overrides_expired: int = 0
