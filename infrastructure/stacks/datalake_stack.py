"""
S3 DataLake stack: raw, processed and archive layer buckets.

The stack renders a DeploymentPlan (datalake.plan.build_plan) into CloudFormation;
CloudFormation is the agent that converges the account to it.

Design goals
------------
- One bucket per layer, named `{project}-{environment}-{layer}-{suffix}`
- Identical security defaults on every bucket:
  - Block all public access
  - SSE-S3 (AES256) with S3 Bucket Keys
  - Enforce SSL
  - Versioning enabled
- Age-based tiering declared per layer (raw: IA at 90d, Glacier at 180d;
  archive: Glacier at 30d; processed: none)

Notes
-----
- Buckets are DESTROY-on-delete but without auto-deleting objects, so a stack
  delete fails on a non-empty bucket instead of dropping data.
- The suffix comes from the persisted deployment state; re-synthesizing never
  changes bucket names.
"""

from typing import Dict

from aws_cdk import (
    Stack,
    Tags,
    aws_s3 as s3,
    CfnOutput,
    Duration,
    RemovalPolicy,
)
from constructs import Construct

from datalake.models import (
    DEEP_ARCHIVE,
    GLACIER,
    GLACIER_IR,
    INTELLIGENT_TIERING,
    ONEZONE_IA,
    STANDARD_IA,
    DeploymentConfig,
    LayerPlan,
)
from datalake.plan import build_plan


CDK_STORAGE_CLASSES = {
    INTELLIGENT_TIERING: s3.StorageClass.INTELLIGENT_TIERING,
    STANDARD_IA: s3.StorageClass.INFREQUENT_ACCESS,
    ONEZONE_IA: s3.StorageClass.ONE_ZONE_INFREQUENT_ACCESS,
    GLACIER_IR: s3.StorageClass.GLACIER_INSTANT_RETRIEVAL,
    GLACIER: s3.StorageClass.GLACIER,
    DEEP_ARCHIVE: s3.StorageClass.DEEP_ARCHIVE,
}


class DataLakeStack(Stack):
    """Stack for the three layer buckets of one data lake deployment."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        deployment: DeploymentConfig,
        **kwargs,
    ) -> None:
        """
        Initialize the DataLake stack.

        Args:
            scope: The parent construct
            construct_id: The logical ID of the stack
            deployment: Project, environment, region and persisted suffix
            **kwargs: Additional arguments to pass to Stack
        """
        super().__init__(scope, construct_id, **kwargs)
        self.environment_name = deployment.environment
        self.plan = build_plan(deployment)
        self.buckets: Dict[str, s3.Bucket] = {}

        for layer_plan in self.plan.layers:
            self.buckets[layer_plan.layer] = self._layer_bucket(layer_plan)

        for layer, bucket in self.buckets.items():
            title = layer.capitalize()
            CfnOutput(
                self,
                f"{title}BucketName",
                value=bucket.bucket_name,
                export_name=f"DataLake{title}BucketName-{self.environment_name}",
                description=f"S3 bucket name for the {layer} layer",
            )

        CfnOutput(
            self,
            "Region",
            value=self.plan.config.region,
            export_name=f"DataLakeRegion-{self.environment_name}",
            description="Region the data lake buckets are deployed to",
        )

    def _layer_bucket(self, layer_plan: LayerPlan) -> s3.Bucket:
        security = layer_plan.security
        lifecycle_rules = []
        if layer_plan.lifecycle is not None:
            rule = layer_plan.lifecycle
            lifecycle_rules.append(
                s3.LifecycleRule(
                    id=rule.rule_id,
                    enabled=True,
                    prefix=rule.prefix or None,
                    transitions=[
                        s3.Transition(
                            storage_class=CDK_STORAGE_CLASSES[t.storage_class],
                            transition_after=Duration.days(t.days),
                        )
                        for t in rule.transitions
                    ],
                )
            )

        bucket = s3.Bucket(
            self,
            f"{layer_plan.layer.capitalize()}Bucket",
            bucket_name=layer_plan.bucket.bucket_name,
            versioned=security.versioning_enabled,
            block_public_access=s3.BlockPublicAccess(
                block_public_acls=security.block_public_acls,
                block_public_policy=security.block_public_policy,
                ignore_public_acls=security.ignore_public_acls,
                restrict_public_buckets=security.restrict_public_buckets,
            ),
            encryption=s3.BucketEncryption.S3_MANAGED,
            enforce_ssl=security.enforce_ssl,
            lifecycle_rules=lifecycle_rules or None,
            removal_policy=RemovalPolicy.DESTROY,
            auto_delete_objects=False,
        )

        # The L2 Bucket only accepts bucket_key_enabled together with KMS/DSSE.
        cfn_bucket = bucket.node.default_child
        cfn_bucket.add_property_override(
            "BucketEncryption.ServerSideEncryptionConfiguration.0.BucketKeyEnabled",
            security.bucket_key_enabled,
        )

        for key, value in layer_plan.bucket.tags.items():
            Tags.of(bucket).add(key, value)
        return bucket
