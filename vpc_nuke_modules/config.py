from dataclasses import dataclass, field
from typing import List, Optional

from botocore.config import Config

from vpc_nuke_modules.errors import ValidationError

DEFAULT_MAX_WORKERS = 8
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BASE_DELAY = 2.0
DEFAULT_API_MAX_ATTEMPTS = 10
REGION_DISCOVERY_REGION = "us-east-1"


@dataclass
class NukeConfig:
    """Run-wide settings, shared read-only by every scope"""

    regions: List[str] = field(default_factory=list)
    profile: Optional[str] = None
    dry_run: bool = False
    debug: bool = False
    assume_yes: bool = False
    max_workers: int = DEFAULT_MAX_WORKERS
    # conflict retries issued by the engine itself
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY
    # throttling retries handled by botocore
    api_max_attempts: int = DEFAULT_API_MAX_ATTEMPTS

    def __post_init__(self):
        if self.max_workers < 1:
            raise ValidationError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.max_attempts < 1:
            raise ValidationError(f"max_attempts must be at least 1, got {self.max_attempts}")

    @classmethod
    def from_args(cls, args) -> "NukeConfig":
        return cls(
            regions=list(args.region or []),
            profile=args.profile,
            dry_run=args.dry_run,
            debug=args.debug,
            assume_yes=args.yes,
            max_workers=args.max_workers,
        )

    def client_config(self) -> Config:
        return Config(retries={"max_attempts": self.api_max_attempts, "mode": "standard"})
