"""
GenerationResult - Outcome of pre-generating catalog sizes for one image.
"""

import time
from dataclasses import dataclass, field
from typing import List


@dataclass
class GenerationResult:
    """
    Outcome of a bulk generation run for one image.

    Attributes:
        image_id: Image the catalog sizes were generated for
        generated: Names of resolutions generated by this run
        skipped: '<name> (<reason>)' for every resolution not generated
        start_time: Start timestamp
    """
    image_id: str
    generated: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    start_time: float = field(default_factory=time.time)

    def add_generated(self, name: str) -> None:
        self.generated.append(name)

    def add_skipped(self, name: str, reason: str) -> None:
        self.skipped.append(f"{name} ({reason})")

    @property
    def errors(self) -> List[str]:
        """Skip entries caused by generation failures."""
        return [entry for entry in self.skipped if '(error: ' in entry]

    @property
    def elapsed_seconds(self) -> float:
        """Elapsed time in seconds."""
        return time.time() - self.start_time

    def to_dict(self) -> dict:
        return {
            'image_id': self.image_id,
            'generated': list(self.generated),
            'skipped': list(self.skipped),
        }
