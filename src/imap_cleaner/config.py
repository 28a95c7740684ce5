"""Run configuration, built once by the CLI and passed to every component."""

from __future__ import annotations

from dataclasses import dataclass, field

from .constants import GROUP_FIELDS, PAGE_SIZE


@dataclass(frozen=True)
class CleanerConfig:
    """Immutable settings for one run."""

    email: str
    password: str = field(default="", repr=False)
    server: str | None = None  # "host:port", guessed when None
    group_field: str = "from"
    match: str | None = None
    count_sizes: bool = False
    allow_plain: bool = False
    page_size: int = PAGE_SIZE

    def __post_init__(self) -> None:
        if self.group_field not in GROUP_FIELDS:
            raise ValueError(f"field must be one of {', '.join(GROUP_FIELDS)}, got {self.group_field!r}")
        if self.page_size < 1:
            raise ValueError("page_size must be positive")

    @property
    def match_mode(self) -> bool:
        return self.match is not None

    @property
    def size_accounting(self) -> bool:
        """Sizes are always fetched in match mode, and in stats mode on request."""
        return self.count_sizes or self.match_mode

    @property
    def domain(self) -> str:
        _, _, domain = self.email.rpartition("@")
        return domain
