"""Embedding configuration model and strategy names."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from config import DEFAULT_BATCH_SIZE
from errors import ConfigurationError


class CleanerStrategy(str, Enum):
    SIMPLE = "simple"
    ADVANCED = "advanced"
    OCR_OPTIMIZED = "ocr-optimized"


class SplitStrategy(str, Enum):
    RECURSIVE = "recursive"
    FIXED = "fixed"


# The settings screen of the first release called the recursive splitter "semantic".
_SPLIT_ALIASES = {"semantic": SplitStrategy.RECURSIVE}


def parse_cleaner_strategy(value: Union[str, CleanerStrategy]) -> CleanerStrategy:
    """Resolve a cleaner strategy name, rejecting unknown values."""
    try:
        return CleanerStrategy(value)
    except ValueError:
        valid = ", ".join(s.value for s in CleanerStrategy)
        raise ConfigurationError(f"Unknown cleaner strategy {value!r}; expected one of: {valid}")


def parse_split_strategy(value: Union[str, SplitStrategy]) -> SplitStrategy:
    """Resolve a split strategy name, rejecting unknown values."""
    if isinstance(value, str) and value in _SPLIT_ALIASES:
        return _SPLIT_ALIASES[value]
    try:
        return SplitStrategy(value)
    except ValueError:
        valid = ", ".join(s.value for s in SplitStrategy)
        raise ConfigurationError(f"Unknown split strategy {value!r}; expected one of: {valid}")


@dataclass(frozen=True)
class EmbeddingConfig:
    """
    Immutable record of the parameters that produced a chunk set.

    ``chunk_size`` and ``overlap`` are words for the fixed splitter and
    characters for the recursive splitter. Invalid combinations are rejected
    here so that no splitter ever sees them.
    """
    chunk_size: int
    overlap: int
    cleaner_strategy: CleanerStrategy
    split_strategy: SplitStrategy
    model: str
    batch_size: int = DEFAULT_BATCH_SIZE
    id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self):
        # Frozen dataclass: normalise strategy names through object.__setattr__
        object.__setattr__(self, "cleaner_strategy", parse_cleaner_strategy(self.cleaner_strategy))
        object.__setattr__(self, "split_strategy", parse_split_strategy(self.split_strategy))

        if not isinstance(self.chunk_size, int) or self.chunk_size <= 0:
            raise ConfigurationError(f"chunk_size must be a positive integer, got {self.chunk_size!r}")
        if not isinstance(self.overlap, int) or self.overlap < 0:
            raise ConfigurationError(f"overlap must be a non-negative integer, got {self.overlap!r}")
        if self.overlap >= self.chunk_size:
            raise ConfigurationError(
                f"overlap ({self.overlap}) must be less than chunk_size ({self.chunk_size})"
            )
        if not isinstance(self.batch_size, int) or self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be at least 1, got {self.batch_size!r}")
        if not self.model or not self.model.strip():
            raise ConfigurationError("model must be a non-empty embedding model name")

    def with_id(self, config_id: str) -> "EmbeddingConfig":
        """Return a copy carrying the id assigned by the store."""
        return EmbeddingConfig(
            chunk_size=self.chunk_size,
            overlap=self.overlap,
            cleaner_strategy=self.cleaner_strategy,
            split_strategy=self.split_strategy,
            model=self.model,
            batch_size=self.batch_size,
            id=config_id,
            name=self.name,
            description=self.description,
        )
