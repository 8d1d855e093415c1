"""Breathing pattern definitions and validation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from breath_flow_server.errors import InvalidPattern

MIN_BREATH_SECONDS = 1
MAX_PHASE_SECONDS = 60
MAX_NAME_LENGTH = 100


class Phase(str, Enum):
    """One step of a breathing cycle, in cycle order."""

    INHALE = "inhale"
    HOLD = "hold"  # Hold with full lungs
    EXHALE = "exhale"
    HOLD_OUT = "hold_out"  # Hold with empty lungs (4-phase patterns only)


@dataclass(frozen=True)
class Pattern:
    """A named breathing cycle.

    Presets have no owner. Custom patterns belong to exactly one user and
    are never mutated; replacing one produces a new Pattern.
    """

    name: str
    inhale_seconds: int
    hold_seconds: int
    exhale_seconds: int
    hold_out_seconds: int = 0
    is_custom: bool = False
    owner_id: str | None = None
    description: str = ""

    @classmethod
    def create(
        cls,
        name: str,
        inhale_seconds: int,
        hold_seconds: int,
        exhale_seconds: int,
        hold_out_seconds: int = 0,
        *,
        owner_id: str | None = None,
        description: str = "",
    ) -> Pattern:
        """Validate durations and build a pattern.

        Inhale and exhale must be 1-60 seconds; holds may be 0-60 seconds.

        Raises:
            InvalidPattern: With one message per offending field
        """
        errors = validate_durations(
            inhale=inhale_seconds,
            hold=hold_seconds,
            exhale=exhale_seconds,
            hold_out=hold_out_seconds,
        )
        name = (name or "").strip()
        if not name:
            errors.append("name must not be empty")
        elif len(name) > MAX_NAME_LENGTH:
            errors.append(f"name must be at most {MAX_NAME_LENGTH} characters")
        if errors:
            raise InvalidPattern(errors)

        return cls(
            name=name,
            inhale_seconds=inhale_seconds,
            hold_seconds=hold_seconds,
            exhale_seconds=exhale_seconds,
            hold_out_seconds=hold_out_seconds,
            is_custom=owner_id is not None,
            owner_id=owner_id,
            description=description,
        )

    @property
    def cycle_seconds(self) -> int:
        """Length of one full cycle."""
        return self.inhale_seconds + self.hold_seconds + self.exhale_seconds + self.hold_out_seconds

    @property
    def signature(self) -> str:
        """Compact form such as ``4-7-8`` or ``4-4-4-4``."""
        parts = [self.inhale_seconds, self.hold_seconds, self.exhale_seconds]
        if self.hold_out_seconds:
            parts.append(self.hold_out_seconds)
        return "-".join(str(p) for p in parts)

    @property
    def label(self) -> str:
        """Display name of a well-known timing, else ``<signature> Pattern``."""
        return KNOWN_TIMINGS.get(self.signature, f"{self.signature} Pattern")

    def phases(self) -> list[tuple[Phase, int]]:
        """Non-zero phases in cycle order."""
        steps = [
            (Phase.INHALE, self.inhale_seconds),
            (Phase.HOLD, self.hold_seconds),
            (Phase.EXHALE, self.exhale_seconds),
            (Phase.HOLD_OUT, self.hold_out_seconds),
        ]
        return [(phase, seconds) for phase, seconds in steps if seconds > 0]

    def to_dict(self) -> dict[str, object]:
        """Serialize for API responses."""
        return {
            "name": self.name,
            "inhale_seconds": self.inhale_seconds,
            "hold_seconds": self.hold_seconds,
            "exhale_seconds": self.exhale_seconds,
            "hold_out_seconds": self.hold_out_seconds,
            "cycle_seconds": self.cycle_seconds,
            "signature": self.signature,
            "is_custom": self.is_custom,
            "description": self.description,
        }


def validate_durations(*, inhale: object, hold: object, exhale: object, hold_out: object) -> list[str]:
    """Collect validation messages for a duration set (empty when valid)."""
    errors: list[str] = []
    for field, value, minimum in (
        ("inhale", inhale, MIN_BREATH_SECONDS),
        ("hold", hold, 0),
        ("exhale", exhale, MIN_BREATH_SECONDS),
        ("hold_out", hold_out, 0),
    ):
        # bool is an int subclass; reject it explicitly
        if not isinstance(value, int) or isinstance(value, bool):
            errors.append(f"{field} must be a whole number of seconds")
        elif value < minimum:
            errors.append(f"{field} ({value}s) is below minimum ({minimum}s)")
        elif value > MAX_PHASE_SECONDS:
            errors.append(f"{field} ({value}s) exceeds maximum ({MAX_PHASE_SECONDS}s)")
    return errors


KNOWN_TIMINGS = {
    "5-2-7": "Gentle Breathing",
    "4-7-8": "4-7-8 Breathing",
    "4-4-4": "Balanced Breathing",
    "4-4-4-4": "Box Breathing",
    "5-0-5": "Equal Breathing",
    "4-0-6": "Relaxing Breath",
}

PRESETS: dict[str, Pattern] = {
    "balanced": Pattern(
        name="4-4-4 Balanced",
        inhale_seconds=4,
        hold_seconds=4,
        exhale_seconds=4,
        description="Equal timing promotes harmony",
    ),
    "extended-calm": Pattern(
        name="Extended Calm",
        inhale_seconds=4,
        hold_seconds=7,
        exhale_seconds=8,
        description="Extended exhale for calm",
    ),
    "box": Pattern(
        name="Box Breathing",
        inhale_seconds=4,
        hold_seconds=4,
        exhale_seconds=4,
        hold_out_seconds=4,
        description="Navy SEAL technique",
    ),
    "equal": Pattern(
        name="Equal Breathing",
        inhale_seconds=5,
        hold_seconds=0,
        exhale_seconds=5,
        description="Even inhale and exhale, no hold",
    ),
    "relaxing": Pattern(
        name="Relaxing Breath",
        inhale_seconds=4,
        hold_seconds=0,
        exhale_seconds=6,
        description="Longer exhale to slow the heart rate",
    ),
    "default": Pattern(
        name="Default",
        inhale_seconds=5,
        hold_seconds=2,
        exhale_seconds=7,
        description="Gentle everyday rhythm",
    ),
}


def get_preset(slug: str) -> Pattern:
    """Look up a preset by slug.

    Raises:
        KeyError: If no preset has this slug
    """
    return PRESETS[slug]
