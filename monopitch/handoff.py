"""
Single-slot handoff of estimates to a slower consumer.

The audio thread publishes, a UI or printing loop takes. Only the newest
estimate is kept; anything the consumer did not pick up in time is dropped.
"""

from .constants import CONFIDENCE_FLOOR
from .estimator import PitchEstimate


class LatestEstimate:
    """
    Latest-value-wins slot.

    Publishing rebinds a single attribute, which is atomic under the GIL, so
    neither side takes a lock.
    """

    def __init__(self, confidence_floor: float = CONFIDENCE_FLOOR):
        """
        Args:
            confidence_floor: Estimates below this confidence are not published
        """
        self.confidence_floor = confidence_floor
        self._slot: PitchEstimate | None = None
        self.published = 0
        self.dropped = 0  # Overwritten before anyone read them

    def publish(self, estimate: PitchEstimate) -> bool:
        """Store ``estimate`` if it is valid and confident enough."""
        if not estimate.valid or estimate.confidence < self.confidence_floor:
            return False
        if self._slot is not None:
            self.dropped += 1
        self._slot = estimate
        self.published += 1
        return True

    def take(self) -> PitchEstimate | None:
        """Return the newest unread estimate and empty the slot."""
        estimate, self._slot = self._slot, None
        return estimate

    def peek(self) -> PitchEstimate | None:
        return self._slot

    def clear(self):
        self._slot = None
