from typing import Optional, Union
from loginguard.config import Settings, settings as default_settings
from loginguard.core.errors import StoreUnavailable
from loginguard.core.logger import logger
from loginguard.models.types import IdentifierType
from loginguard.security.attempt_tracker import AttemptTracker


class ProgressiveDelayCalculator:
    def __init__(self, tracker: AttemptTracker, settings: Optional[Settings] = None):
        self.tracker = tracker
        self.settings = settings or default_settings
        self.base_delay_ms = self.settings.delay_base_ms
        self.factor = self.settings.delay_factor
        self.max_delay_ms = self.settings.delay_max_ms
        self.window_minutes = self.settings.delay_window_minutes

    def calculate_delay(self, failures: int) -> int:
        # 1s, 2s, 4s, 8s ... capped
        failures = max(0, failures)
        try:
            delay = self.base_delay_ms * (self.factor ** failures)
        except OverflowError:
            return self.max_delay_ms
        return int(min(delay, self.max_delay_ms))

    def calculate(self, identifier: str, identifier_type: Union[str, IdentifierType] = IdentifierType.EMAIL) -> int:
        """Advisory wait, in milliseconds, before the next attempt is accepted.

        Zero when there are no recent failures or the store cannot be read.
        """
        try:
            failures = self.tracker.count_recent_failures(identifier, identifier_type, self.window_minutes)
        except StoreUnavailable as e:
            logger.error("delay_calculation_error", identifier=identifier, error=str(e))
            return 0

        if failures < 1:
            return 0
        return self.calculate_delay(failures)
