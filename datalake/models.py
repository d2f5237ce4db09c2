"""
Data models for the tiered storage data lake.

The models are plain frozen dataclasses describing *declared* state: what each
layer's bucket should look like. Nothing in here talks to AWS.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


RAW = "raw"
PROCESSED = "processed"
ARCHIVE = "archive"

# Declaration order is also the order in which layers are reconciled and reported.
LAYERS: Tuple[str, ...] = (RAW, PROCESSED, ARCHIVE)

STANDARD = "STANDARD"
INTELLIGENT_TIERING = "INTELLIGENT_TIERING"
STANDARD_IA = "STANDARD_IA"
ONEZONE_IA = "ONEZONE_IA"
GLACIER_IR = "GLACIER_IR"
GLACIER = "GLACIER"
DEEP_ARCHIVE = "DEEP_ARCHIVE"

# Hot -> cold. Equal rank means neither class is colder than the other.
STORAGE_CLASS_RANK: Dict[str, int] = {
    STANDARD: 0,
    INTELLIGENT_TIERING: 1,
    STANDARD_IA: 2,
    ONEZONE_IA: 2,
    GLACIER_IR: 3,
    GLACIER: 4,
    DEEP_ARCHIVE: 5,
}


@dataclass(frozen=True)
class DeploymentConfig:
    """
    Boundary input for one deployment.

    Attributes:
        project_name: Naming prefix (lowercase, hyphen-safe)
        environment: Environment tag, conventionally dev/staging/prod
        region: Target AWS region, passed through unchanged to outputs
        suffix: Deployment-scoped random suffix shared by all layers
    """

    project_name: str
    environment: str
    region: str
    suffix: str


@dataclass(frozen=True)
class SecurityPolicy:
    """
    Security posture attached to every bucket.

    The defaults are the only supported values; see security.build_security_policy.
    """

    sse_algorithm: str = "AES256"
    bucket_key_enabled: bool = True
    versioning_enabled: bool = True
    block_public_acls: bool = True
    block_public_policy: bool = True
    ignore_public_acls: bool = True
    restrict_public_buckets: bool = True
    enforce_ssl: bool = True


@dataclass(frozen=True)
class Transition:
    """Move objects to `storage_class` once they are `days` old."""

    days: int
    storage_class: str

    def to_dict(self) -> dict:
        return {"Days": self.days, "StorageClass": self.storage_class}


@dataclass(frozen=True)
class LifecycleRule:
    """
    Ordered, age-based storage class transitions for one layer.

    Attributes:
        rule_id: Stable rule identifier (used by S3 to diff configurations)
        layer: Layer the rule belongs to
        transitions: Transitions ordered by strictly increasing age threshold
        prefix: Object key filter; empty string applies to every object
    """

    rule_id: str
    layer: str
    transitions: Tuple[Transition, ...]
    prefix: str = ""


@dataclass(frozen=True)
class BucketSpec:
    """Declared bucket for one layer."""

    layer: str
    bucket_name: str
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class LayerPlan:
    """Everything declared for one layer: bucket, security policy, optional lifecycle rule."""

    bucket: BucketSpec
    security: SecurityPolicy
    lifecycle: Optional[LifecycleRule] = None

    @property
    def layer(self) -> str:
        return self.bucket.layer

    def to_dict(self) -> dict:
        lifecycle = None
        if self.lifecycle is not None:
            lifecycle = {
                "rule_id": self.lifecycle.rule_id,
                "prefix": self.lifecycle.prefix,
                "transitions": [t.to_dict() for t in self.lifecycle.transitions],
            }
        return {
            "layer": self.layer,
            "bucket_name": self.bucket.bucket_name,
            "tags": dict(self.bucket.tags),
            "security": {
                "sse_algorithm": self.security.sse_algorithm,
                "bucket_key_enabled": self.security.bucket_key_enabled,
                "versioning_enabled": self.security.versioning_enabled,
                "block_public_acls": self.security.block_public_acls,
                "block_public_policy": self.security.block_public_policy,
                "ignore_public_acls": self.security.ignore_public_acls,
                "restrict_public_buckets": self.security.restrict_public_buckets,
                "enforce_ssl": self.security.enforce_ssl,
            },
            "lifecycle": lifecycle,
        }


@dataclass(frozen=True)
class DeploymentPlan:
    """The full declared state of one deployment."""

    config: DeploymentConfig
    layers: Tuple[LayerPlan, ...]

    def layer(self, name: str) -> LayerPlan:
        for layer_plan in self.layers:
            if layer_plan.layer == name:
                return layer_plan
        raise KeyError(name)

    def bucket_names(self) -> Tuple[str, ...]:
        return tuple(lp.bucket.bucket_name for lp in self.layers)

    def outputs(self) -> Dict[str, str]:
        """
        Read-only values for downstream collaborators.

        Returns:
            Dictionary with `<layer>_bucket_name` per layer plus `region`
        """
        result = {f"{lp.layer}_bucket_name": lp.bucket.bucket_name for lp in self.layers}
        result["region"] = self.config.region
        return result

    def to_dict(self) -> dict:
        return {
            "project_name": self.config.project_name,
            "environment": self.config.environment,
            "region": self.config.region,
            "suffix": self.config.suffix,
            "layers": [lp.to_dict() for lp in self.layers],
            "outputs": self.outputs(),
        }
