"""
Bucket naming for the data lake layers.

Bucket names must be globally unique. Every layer of a deployment gets
`{project}-{environment}-{layer}-{suffix}` where the suffix is generated once per
deployment (see state.py) and shared by all layers, so the three buckets are
recognizable as one deployment.
"""

import re
import secrets
from typing import Dict

from datalake.errors import InvalidConfiguration
from datalake.models import LAYERS

SUFFIX_BYTES = 4  # 8 hex characters
MANAGED_BY = "datalake"

_COMPONENT_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$")
_SUFFIX_RE = re.compile(r"^[0-9a-f]{8}$")
_MIN_BUCKET_NAME_LEN = 3
_MAX_BUCKET_NAME_LEN = 63
# Names S3 reserves for its own features; CreateBucket rejects them.
_RESERVED_PREFIXES = ("xn--", "sthree-", "amzn-s3-demo-")
_RESERVED_SUFFIXES = ("-s3alias", "--ol-s3", ".mrap", "--x-s3")


def generate_suffix() -> str:
    """
    Generate a new deployment suffix.

    Returns:
        8 lowercase hex characters from a CSPRNG
    """
    return secrets.token_hex(SUFFIX_BYTES)


def validate_suffix(suffix: str) -> str:
    if not isinstance(suffix, str) or not _SUFFIX_RE.match(suffix):
        raise InvalidConfiguration(f"suffix must be 8 lowercase hex characters, got {suffix!r}")
    return suffix


def validate_name_component(label: str, value: str) -> str:
    """
    Validate one hyphen-joined component of a bucket name.

    Args:
        label: Human readable name of the input (for the error message)
        value: The component value

    Returns:
        The value unchanged

    Raises:
        InvalidConfiguration: If the value is empty or not lowercase/hyphen-safe
    """
    if not isinstance(value, str) or not _COMPONENT_RE.match(value):
        raise InvalidConfiguration(
            f"{label} must be lowercase letters, digits and inner hyphens only, got {value!r}"
        )
    return value


def bucket_name(project_name: str, environment: str, layer: str, suffix: str) -> str:
    """
    Build the bucket name for one layer.

    Deterministic: the same inputs always produce the same name.

    Raises:
        InvalidConfiguration: If any component is invalid or the name breaks S3 length limits
    """
    validate_name_component("project_name", project_name)
    validate_name_component("environment", environment)
    if layer not in LAYERS:
        raise InvalidConfiguration(f"unknown layer {layer!r}, expected one of {', '.join(LAYERS)}")
    validate_suffix(suffix)

    name = f"{project_name}-{environment}-{layer}-{suffix}"
    if not _MIN_BUCKET_NAME_LEN <= len(name) <= _MAX_BUCKET_NAME_LEN:
        raise InvalidConfiguration(
            f"bucket name {name!r} is {len(name)} characters; S3 allows "
            f"{_MIN_BUCKET_NAME_LEN}..{_MAX_BUCKET_NAME_LEN}"
        )
    if name.startswith(_RESERVED_PREFIXES) or name.endswith(_RESERVED_SUFFIXES):
        raise InvalidConfiguration(f"bucket name {name!r} uses a prefix or suffix reserved by S3")
    return name


def build_tags(project_name: str, environment: str, layer: str) -> Dict[str, str]:
    """Tag set applied to every layer bucket."""
    return {
        "Project": project_name,
        "Environment": environment,
        "ManagedBy": MANAGED_BY,
        "Layer": layer,
    }
