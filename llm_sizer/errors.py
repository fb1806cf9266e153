"""Shared exception types for the sizing engine."""


class SizerError(Exception):
    """Base class for errors raised at the llm_sizer input boundary."""


class InvalidWorkloadError(SizerError, ValueError):
    """Raised when a workload description violates the input contract.

    Carries *field* (the offending attribute, e.g. "batch_size") and a
    human-readable *details* string so callers can point at the bad input.
    """

    def __init__(self, field: str, details: str) -> None:
        self.field = field
        self.details = details
        super().__init__(f"Invalid workload field '{field}': {details}")


class InvalidAcceleratorError(SizerError, ValueError):
    """Raised when an accelerator catalog entry is malformed."""

    def __init__(self, gpu_id: str, details: str) -> None:
        self.gpu_id = gpu_id
        self.details = details
        super().__init__(f"Invalid accelerator '{gpu_id}': {details}")
