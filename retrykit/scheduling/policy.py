from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry budget and backoff tuning for one call site.

    Every field is required so each call site states its own tuning.
    Durations are in seconds.

    Attributes:
        max_attempts: Total number of tries, including the first one (>= 1)
        base_delay: Delay before the first retry
        max_delay: Upper bound for any delay, server hints included
        jitter_fraction: Random spread applied to each delay (0.0 - 1.0)
    """
    max_attempts: int
    base_delay: float
    max_delay: float
    jitter_fraction: float

    def __post_init__(self):
        if isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int):
            raise ValueError(f"max_attempts must be an integer, got {self.max_attempts!r}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

        for name in ('base_delay', 'max_delay', 'jitter_fraction'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{name} must be a number, got {value!r}")
            if value != value or value < 0:
                raise ValueError(f"{name} must be a non-negative number, got {value}")
            object.__setattr__(self, name, float(value))

        if self.max_delay < self.base_delay:
            raise ValueError(
                f"max_delay ({self.max_delay}) must be >= base_delay ({self.base_delay})"
            )
        if self.jitter_fraction > 1.0:
            raise ValueError(f"jitter_fraction must be between 0.0 and 1.0, got {self.jitter_fraction}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'RetryPolicy':
        """
        Build a policy from a mapping such as a parsed YAML section.

        Raises:
            ValueError: If a field is missing, unknown or invalid
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Retry policy must be a mapping, got {type(data).__name__}")

        names = [f.name for f in fields(cls)]
        normalized = {str(key).replace('-', '_'): value for key, value in data.items()}

        missing = [name for name in names if name not in normalized]
        if missing:
            raise ValueError(f"Retry policy is missing required field(s): {', '.join(missing)}")

        unknown = sorted(set(normalized) - set(names))
        if unknown:
            raise ValueError(f"Retry policy has unknown field(s): {', '.join(unknown)}")

        return cls(**normalized)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class AttemptState:
    """Progress of a single run; owned by the executor for that run only."""
    attempt_number: int = 1
    elapsed_time: float = 0.0
