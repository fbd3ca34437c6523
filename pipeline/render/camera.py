"""
Auto-fit camera policy.

The map frames all visible markers after a fetch or a filter action, until
the user pans or zooms. Camera moves the renderer starts itself are fenced
off so they never count as user gestures.
"""

from dataclasses import dataclass

from loguru import logger


@dataclass
class AutoFitPolicy:
    """
    Explicit auto-fit state.

    auto_fit_enabled: a fit is pending for the next render
    programmatic_move: a renderer-initiated camera move is in flight
    """

    auto_fit_enabled: bool = True
    programmatic_move: bool = False
    user_has_adjusted: bool = False

    def request_fit(self) -> None:
        """Fresh fetch or filter action: frame the markers on next render."""
        self.auto_fit_enabled = True

    def reset(self) -> None:
        """New load cycle: forget earlier user gestures."""
        self.auto_fit_enabled = True
        self.user_has_adjusted = False

    def user_gesture(self) -> bool:
        """
        Handle a move/zoom start event.

        Returns:
            True if the event was a genuine user gesture
        """
        if self.programmatic_move:
            return False

        if not self.user_has_adjusted:
            logger.debug("User adjusted the map, auto-fit suspended")
        self.user_has_adjusted = True
        self.auto_fit_enabled = False
        return True

    def should_fit(self, marker_count: int) -> bool:
        return marker_count > 0 and self.auto_fit_enabled

    def begin_programmatic_move(self) -> None:
        self.programmatic_move = True

    def end_programmatic_move(self) -> None:
        self.programmatic_move = False

    def consume(self) -> None:
        """A render happened; the pending fit request is spent either way."""
        self.auto_fit_enabled = False
