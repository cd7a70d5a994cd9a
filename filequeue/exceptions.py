"""filequeue exceptions."""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional


@dataclass
class ValidationError:
    """Single configuration validation error."""
    message: str
    path: str = ""
    exit_code: int = 2


class ConfigValidationError(Exception):
    """Raised when a queue configuration fails validation.

    Collects every problem found in one pass so the CLI can report them
    together and map them to an exit code.
    """

    def __init__(self, errors: List[ValidationError]):
        self.errors = errors
        self.exit_code = 2

        messages = []
        for error in errors:
            if error.path:
                messages.append(f"Validation error at '{error.path}': {error.message}")
            else:
                messages.append(f"Validation error: {error.message}")

        super().__init__("\n".join(messages))


class ClaimCleanupError(OSError):
    """Raised when a claimed item was read but its claim file could not be removed.

    The payload has already been read and is attached, but the pop call as a
    whole failed: the claim file is still on disk and will be found by
    ``FileQueue.claims()``.
    """

    def __init__(self, cause: OSError, claim_path: Path, payload: bytes):
        super().__init__(cause.errno, cause.strerror or str(cause), str(claim_path))
        self.claim_path = Path(claim_path)
        self.payload: Optional[bytes] = payload
