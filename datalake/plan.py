"""Pure planning: deployment configuration -> declared resources for every layer."""

from datalake.errors import InvalidConfiguration
from datalake.lifecycle import lifecycle_rule_for
from datalake.models import LAYERS, BucketSpec, DeploymentConfig, DeploymentPlan, LayerPlan
from datalake.naming import bucket_name, build_tags
from datalake.security import build_security_policy


def plan_layer(config: DeploymentConfig, layer: str) -> LayerPlan:
    bucket = BucketSpec(
        layer=layer,
        bucket_name=bucket_name(config.project_name, config.environment, layer, config.suffix),
        tags=build_tags(config.project_name, config.environment, layer),
    )
    return LayerPlan(
        bucket=bucket,
        security=build_security_policy(layer),
        lifecycle=lifecycle_rule_for(layer),
    )


def build_plan(config: DeploymentConfig) -> DeploymentPlan:
    """
    Build the declared state of a deployment.

    Deterministic and side-effect free: the same config always yields an equal plan.

    Raises:
        InvalidConfiguration: If a bucket name cannot be built from the config
    """
    if not config.region or not config.region.strip():
        raise InvalidConfiguration("region must not be empty")
    return DeploymentPlan(
        config=config,
        layers=tuple(plan_layer(config, layer) for layer in LAYERS),
    )
