"""
Popup interaction state and viewport placement.

Per marker, hovering runs idle -> hovered -> idle; independently a popup runs
idle -> open -> loading_images -> images_ready | images_empty -> adjusted ->
closed.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from pipeline.render.widget import Rect


class PopupPhase(str, Enum):
    IDLE = "idle"
    OPEN = "open"
    LOADING_IMAGES = "loading_images"
    IMAGES_READY = "images_ready"
    IMAGES_EMPTY = "images_empty"
    ADJUSTED = "adjusted"
    CLOSED = "closed"


# Allowed transitions; "closed" is reachable from every open phase
_TRANSITIONS = {
    PopupPhase.IDLE: {PopupPhase.OPEN},
    PopupPhase.OPEN: {PopupPhase.LOADING_IMAGES, PopupPhase.IMAGES_EMPTY, PopupPhase.ADJUSTED},
    PopupPhase.LOADING_IMAGES: {PopupPhase.IMAGES_READY, PopupPhase.IMAGES_EMPTY},
    PopupPhase.IMAGES_READY: {PopupPhase.ADJUSTED},
    PopupPhase.IMAGES_EMPTY: {PopupPhase.ADJUSTED},
    PopupPhase.ADJUSTED: {PopupPhase.ADJUSTED},
    PopupPhase.CLOSED: {PopupPhase.OPEN},
}


class InvalidTransition(Exception):
    """Raised for a popup state change the state machine does not allow."""
    pass


@dataclass
class CarouselState:
    """Image carousel with one active slide; broken slides become placeholders."""

    images: list[str] = field(default_factory=list)
    active_index: int = 0
    broken: set[int] = field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return not self.images

    def show(self, index: int) -> None:
        """Dot navigation."""
        if 0 <= index < len(self.images):
            self.active_index = index

    def next(self) -> None:
        """Swipe left."""
        if self.images:
            self.active_index = (self.active_index + 1) % len(self.images)

    def previous(self) -> None:
        """Swipe right."""
        if self.images:
            self.active_index = (self.active_index - 1) % len(self.images)

    def mark_broken(self, index: int) -> None:
        """An image failed to load; it stays a placeholder, never retried."""
        if 0 <= index < len(self.images):
            self.broken.add(index)

    def is_broken(self, index: int) -> bool:
        return index in self.broken


@dataclass
class PopupSession:
    """State of the popup opened for one site."""

    site_id: str
    phase: PopupPhase = PopupPhase.IDLE
    carousel: CarouselState = field(default_factory=CarouselState)
    # Set when the camera was already moved for this popup
    centered: bool = False

    def transition(self, phase: PopupPhase) -> None:
        if phase == PopupPhase.CLOSED:
            self.phase = phase
            return
        if phase not in _TRANSITIONS[self.phase]:
            raise InvalidTransition(f"{self.phase.value} -> {phase.value}")
        self.phase = phase

    def open(self) -> None:
        self.transition(PopupPhase.OPEN)

    def start_loading(self) -> None:
        self.transition(PopupPhase.LOADING_IMAGES)

    def images_loaded(self, images: Sequence[str]) -> None:
        self.carousel = CarouselState(images=list(images))
        if self.phase == PopupPhase.OPEN:
            # No references to resolve
            self.transition(PopupPhase.IMAGES_EMPTY)
            return
        self.transition(PopupPhase.IMAGES_READY if images else PopupPhase.IMAGES_EMPTY)

    def adjusted(self) -> None:
        self.transition(PopupPhase.ADJUSTED)

    def close(self) -> None:
        self.transition(PopupPhase.CLOSED)

    @property
    def is_open(self) -> bool:
        return self.phase not in (PopupPhase.IDLE, PopupPhase.CLOSED)


@dataclass
class HoverState:
    """Tooltip state; at most one marker is highlighted."""

    hovered_id: str | None = None

    def enter(self, site_id: str) -> None:
        self.hovered_id = site_id

    def leave(self, site_id: str) -> None:
        if self.hovered_id == site_id:
            self.hovered_id = None

    @property
    def markers_dimmed(self) -> bool:
        return self.hovered_id is not None


def safe_rect(container_size: tuple[float, float], obstructions: Sequence[Rect] = (), padding: float = 0) -> Rect:
    """
    Container area not covered by fixed overlays, inset by padding.

    Overlays spanning the top of the container (a search bar) push the top
    edge down; overlays anchored at the bottom push the bottom edge up.
    """
    width, height = container_size
    top, bottom = 0.0, float(height)

    for rect in obstructions:
        if rect.top <= 0 < rect.bottom:
            top = max(top, rect.bottom)
        elif rect.top < height <= rect.bottom:
            bottom = min(bottom, rect.top)

    return Rect(padding, top + padding, max(width - 2 * padding, 0), max(bottom - top - 2 * padding, 0))


def _axis_shift(start: float, end: float, safe_start: float, safe_end: float) -> float:
    if start < safe_start:
        return safe_start - start
    if end > safe_end:
        # Never push the leading edge out of the safe area
        return max(safe_end - end, safe_start - start)
    return 0.0


def compute_popup_shift(
    popup: Rect,
    container_size: tuple[float, float],
    obstructions: Sequence[Rect] = (),
    padding: float = 0,
) -> tuple[float, float]:
    """
    Minimal translation that moves a popup fully into the safe rectangle.

    Returns:
        (dx, dy) in pixels to add to the popup position; (0, 0) if it fits.
        The camera pans by the negated vector.
    """
    safe = safe_rect(container_size, obstructions, padding)
    dx = _axis_shift(popup.left, popup.right, safe.left, safe.right)
    dy = _axis_shift(popup.top, popup.bottom, safe.top, safe.bottom)
    return dx, dy
