"""
Error taxonomy for the tiered storage data lake.

Every failure surfaced to the operator derives from DataLakeError so the CLI can
map it to an exit code. botocore errors are translated at the reconciler boundary.
"""

from typing import List, Optional


class DataLakeError(RuntimeError):
    """Base class for expected, operator-facing failures."""


class InvalidConfiguration(DataLakeError, ValueError):
    """Configuration input (names, suffix, rules) violates a naming or policy rule."""


class InvalidLifecycleRule(InvalidConfiguration):
    """Lifecycle transitions are not strictly increasing or move to a hotter class."""


class NamingConflict(DataLakeError):
    """
    Requested bucket name already exists in the global S3 namespace.

    Not retried automatically: the operator rotates the deployment suffix and
    re-applies.
    """

    def __init__(self, bucket_name: str, detail: str = ""):
        self.bucket_name = bucket_name
        message = f"bucket name already taken: {bucket_name}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class PolicyApplicationFailure(DataLakeError):
    """A security sub-policy could not be attached or verified on a bucket."""

    def __init__(self, bucket_name: str, sub_policy: str, detail: str = ""):
        self.bucket_name = bucket_name
        self.sub_policy = sub_policy
        message = f"failed to apply {sub_policy} to {bucket_name}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class TeardownBlocked(DataLakeError):
    """Teardown requested for one or more buckets that still hold objects."""

    def __init__(self, bucket_names: List[str], detail: Optional[str] = None):
        self.bucket_names = list(bucket_names)
        message = "refusing to delete non-empty bucket(s): " + ", ".join(self.bucket_names)
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
