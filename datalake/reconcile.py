"""
Converge real S3 buckets to a DeploymentPlan using the S3 API (boto3).

Per layer, in order:
1. bucket exists and is ours (create it if missing)
2. security sub-policies: public access block, TLS-only policy, versioning, encryption
3. tags
4. lifecycle configuration (put the declared rule, or remove any rule when none is declared)

Every step reads current state first and only writes on a difference, so applying
an unchanged plan twice performs no writes the second time. Security is verified by
reading it back; lifecycle is only attached once security has converged.

Error mapping
-------------
- bucket name owned by another account     -> NamingConflict (not retried)
- security sub-policy not converged        -> PolicyApplicationFailure (after bounded retries)
- destroy on a bucket that still has data  -> TeardownBlocked (nothing is deleted)
- any other botocore ClientError propagates unchanged
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from botocore.exceptions import ClientError

from datalake.errors import NamingConflict, PolicyApplicationFailure, TeardownBlocked
from datalake.lifecycle import lifecycle_configuration, lifecycle_matches
from datalake.models import DeploymentPlan, LayerPlan, SecurityPolicy
from datalake.security import (
    bucket_policy_matches,
    encryption_configuration,
    encryption_matches,
    public_access_block_configuration,
    tls_only_bucket_policy,
    versioning_configuration,
)

logger = logging.getLogger("datalake.reconcile")

DEFAULT_POLICY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SECONDS = 2.0

_MISSING_BUCKET_CODES = {"404", "NoSuchBucket", "NotFound"}
_FOREIGN_BUCKET_CODES = {"403", "AccessDenied", "Forbidden"}

BUCKET_MISSING = "missing"
BUCKET_OWNED = "owned"
BUCKET_FOREIGN = "foreign"


def _error_code(error: ClientError) -> str:
    return str((error.response.get("Error") or {}).get("Code") or "")


@dataclass
class LayerResult:
    """What apply did to one layer."""

    layer: str
    bucket_name: str
    created: bool = False
    changes: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.created or bool(self.changes)

    def to_dict(self) -> dict:
        return {
            "layer": self.layer,
            "bucket_name": self.bucket_name,
            "created": self.created,
            "changes": list(self.changes),
        }


@dataclass
class ApplyReport:
    region: str
    results: List[LayerResult] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return any(r.changed for r in self.results)

    def to_dict(self) -> dict:
        return {
            "region": self.region,
            "changed": self.changed,
            "layers": [r.to_dict() for r in self.results],
        }


class Reconciler:
    """
    Idempotent convergence of a DeploymentPlan against S3.

    Args:
        s3_client: boto3 S3 client (or anything with the same methods)
        max_policy_attempts: Attempts per security sub-policy before giving up
        retry_delay_seconds: Delay between attempts
        sleep: Injected for tests
        log: Optional logger adapter (CLI passes one carrying the run id)
    """

    def __init__(
        self,
        s3_client: Any,
        *,
        max_policy_attempts: int = DEFAULT_POLICY_ATTEMPTS,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        log: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        if max_policy_attempts < 1:
            raise ValueError("max_policy_attempts must be >= 1")
        self.s3 = s3_client
        self.max_policy_attempts = max_policy_attempts
        self.retry_delay_seconds = retry_delay_seconds
        self._sleep = sleep
        self.log = log or logging.LoggerAdapter(logger, {})

    # ------------------------------------------------------------------ apply

    def apply(self, plan: DeploymentPlan) -> ApplyReport:
        """
        Converge every layer of the plan.

        Layers are reconciled in declaration order; the first failure propagates
        and leaves already converged layers untouched.
        """
        report = ApplyReport(region=plan.config.region)
        for layer_plan in plan.layers:
            report.results.append(self.apply_layer(layer_plan, region=plan.config.region))
        self.log.info(
            "apply finished: %s",
            "changes applied" if report.changed else "no changes (already converged)",
        )
        return report

    def apply_layer(self, layer_plan: LayerPlan, *, region: str) -> LayerResult:
        name = layer_plan.bucket.bucket_name
        result = LayerResult(layer=layer_plan.layer, bucket_name=name)

        result.created = self._ensure_bucket(name, region)
        try:
            result.changes.extend(self._ensure_security(name, layer_plan.security))
        except PolicyApplicationFailure:
            if result.created:
                self._discard_unprotected_bucket(name)
            raise
        if self._ensure_tags(name, layer_plan.bucket.tags):
            result.changes.append("tags")
        if self._ensure_lifecycle(layer_plan):
            result.changes.append("lifecycle")

        self.log.info(
            "layer %s bucket %s: %s",
            layer_plan.layer,
            name,
            "created" if result.created else (", ".join(result.changes) or "unchanged"),
        )
        return result

    # ----------------------------------------------------------------- bucket

    def bucket_status(self, name: str) -> str:
        """Return BUCKET_MISSING, BUCKET_OWNED or BUCKET_FOREIGN."""
        try:
            self.s3.head_bucket(Bucket=name)
        except ClientError as e:
            code = _error_code(e)
            if code in _MISSING_BUCKET_CODES:
                return BUCKET_MISSING
            if code in _FOREIGN_BUCKET_CODES:
                return BUCKET_FOREIGN
            raise
        return BUCKET_OWNED

    def _ensure_bucket(self, name: str, region: str) -> bool:
        status = self.bucket_status(name)
        if status == BUCKET_OWNED:
            return False
        if status == BUCKET_FOREIGN:
            raise NamingConflict(name, "owned by another account")

        kwargs: Dict[str, Any] = {"Bucket": name}
        # us-east-1 rejects an explicit LocationConstraint.
        if region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            self.s3.create_bucket(**kwargs)
        except ClientError as e:
            code = _error_code(e)
            if code == "BucketAlreadyOwnedByYou":
                return False
            if code == "BucketAlreadyExists":
                raise NamingConflict(name, "created concurrently by another account") from e
            raise
        self.log.info("created bucket %s in %s", name, region)
        return True

    def _discard_unprotected_bucket(self, name: str) -> None:
        """
        Delete a bucket created in this run whose security did not converge.

        The bucket is still empty (nothing writes to it before security and lifecycle
        are in place), so the next apply simply creates it again.
        """
        self.log.warning("removing bucket %s created in this run: security did not converge", name)
        try:
            self.s3.delete_bucket(Bucket=name)
        except ClientError as e:
            self.log.error("could not remove unprotected bucket %s: %s", name, e)
            raise

    # --------------------------------------------------------------- security

    def _ensure_security(self, name: str, policy: SecurityPolicy) -> List[str]:
        # Access guards first; the other sub-policies are written behind them.
        steps: List[Tuple[str, Callable[[], Any], Callable[[Any], bool], Callable[[], Any]]] = [
            (
                "public_access_block",
                lambda: self._read_optional(
                    lambda: self.s3.get_public_access_block(Bucket=name)["PublicAccessBlockConfiguration"],
                    "NoSuchPublicAccessBlockConfiguration",
                ),
                lambda observed: observed == public_access_block_configuration(policy),
                lambda: self.s3.put_public_access_block(
                    Bucket=name, PublicAccessBlockConfiguration=public_access_block_configuration(policy)
                ),
            ),
        ]
        if policy.enforce_ssl:
            steps.append(
                (
                    "tls_only_policy",
                    lambda: self._read_optional(
                        lambda: self.s3.get_bucket_policy(Bucket=name)["Policy"],
                        "NoSuchBucketPolicy",
                    ),
                    lambda observed: bucket_policy_matches(name, observed),
                    lambda: self.s3.put_bucket_policy(Bucket=name, Policy=tls_only_bucket_policy(name)),
                ),
            )
        steps.extend(
            [
                (
                    "versioning",
                    lambda: self.s3.get_bucket_versioning(Bucket=name).get("Status"),
                    lambda observed: observed == versioning_configuration(policy)["Status"],
                    lambda: self.s3.put_bucket_versioning(
                        Bucket=name, VersioningConfiguration=versioning_configuration(policy)
                    ),
                ),
                (
                    "encryption",
                    lambda: self._read_optional(
                        lambda: self.s3.get_bucket_encryption(Bucket=name)["ServerSideEncryptionConfiguration"],
                        "ServerSideEncryptionConfigurationNotFoundError",
                    ),
                    lambda observed: encryption_matches(policy, observed),
                    lambda: self.s3.put_bucket_encryption(
                        Bucket=name, ServerSideEncryptionConfiguration=encryption_configuration(policy)
                    ),
                ),
            ]
        )

        changes = []
        for sub_policy, read, matches, put in steps:
            if self._converge(name, sub_policy, read, matches, put):
                changes.append(sub_policy)
        return changes

    def _converge(
        self,
        name: str,
        sub_policy: str,
        read: Callable[[], Any],
        matches: Callable[[Any], bool],
        put: Callable[[], Any],
    ) -> bool:
        """
        Bring one sub-policy to the declared state and verify it by reading it back.

        Returns:
            True if a write was needed, False if it already matched

        Raises:
            PolicyApplicationFailure: If the sub-policy does not converge within the attempts
        """
        wrote = False
        detail = ""
        for attempt in range(1, self.max_policy_attempts + 1):
            try:
                if matches(read()):
                    return wrote
                put()
                wrote = True
                if matches(read()):
                    return wrote
                detail = "read-back does not match declared state"
            except ClientError as e:
                detail = f"{_error_code(e)}: {e}"

            self.log.warning(
                "%s on %s not converged (attempt %d/%d): %s",
                sub_policy,
                name,
                attempt,
                self.max_policy_attempts,
                detail,
            )
            if attempt < self.max_policy_attempts:
                self._sleep(self.retry_delay_seconds)

        raise PolicyApplicationFailure(name, sub_policy, detail)

    @staticmethod
    def _read_optional(read: Callable[[], Any], missing_code: str) -> Any:
        try:
            return read()
        except ClientError as e:
            if _error_code(e) == missing_code:
                return None
            raise

    # ------------------------------------------------------- tags & lifecycle

    def _ensure_tags(self, name: str, tags: Dict[str, str]) -> bool:
        tag_set = self._read_optional(lambda: self.s3.get_bucket_tagging(Bucket=name)["TagSet"], "NoSuchTagSet")
        current = {t["Key"]: t["Value"] for t in tag_set or []}
        if current == tags:
            return False
        self.s3.put_bucket_tagging(
            Bucket=name,
            Tagging={"TagSet": [{"Key": k, "Value": v} for k, v in sorted(tags.items())]},
        )
        return True

    def _ensure_lifecycle(self, layer_plan: LayerPlan) -> bool:
        name = layer_plan.bucket.bucket_name
        observed = self._read_optional(
            lambda: self.s3.get_bucket_lifecycle_configuration(Bucket=name)["Rules"],
            "NoSuchLifecycleConfiguration",
        ) or []

        rule = layer_plan.lifecycle
        if rule is None:
            if not observed:
                return False
            self.log.warning("removing undeclared lifecycle configuration from %s", name)
            self.s3.delete_bucket_lifecycle(Bucket=name)
            return True

        if lifecycle_matches(rule, observed):
            return False
        self.s3.put_bucket_lifecycle_configuration(
            Bucket=name, LifecycleConfiguration=lifecycle_configuration(rule)
        )
        return True

    # --------------------------------------------------------------- teardown

    def is_empty(self, name: str) -> bool:
        """True when the bucket holds no object versions and no delete markers."""
        resp = self.s3.list_object_versions(Bucket=name, MaxKeys=1)
        return not (resp.get("Versions") or resp.get("DeleteMarkers"))

    def teardown(self, plan: DeploymentPlan) -> List[str]:
        """
        Delete the deployment's buckets, but only if all of them are empty.

        Emptiness is checked for every layer before anything is deleted. Objects are
        never removed by this method.

        Returns:
            Names of the deleted buckets

        Raises:
            TeardownBlocked: If any bucket still holds objects or versions
        """
        existing: List[str] = []
        non_empty: List[str] = []
        for layer_plan in plan.layers:
            name = layer_plan.bucket.bucket_name
            status = self.bucket_status(name)
            if status == BUCKET_MISSING:
                self.log.info("bucket %s does not exist, nothing to delete", name)
                continue
            if status == BUCKET_FOREIGN:
                self.log.warning("bucket %s is not owned by this account, skipping", name)
                continue
            existing.append(name)
            if not self.is_empty(name):
                non_empty.append(name)

        if non_empty:
            raise TeardownBlocked(non_empty)

        deleted = []
        for name in existing:
            try:
                self.s3.delete_bucket(Bucket=name)
            except ClientError as e:
                if _error_code(e) == "BucketNotEmpty":
                    raise TeardownBlocked([name], "objects were written during teardown") from e
                raise
            self.log.info("deleted bucket %s", name)
            deleted.append(name)
        return deleted
