"""
Uniform security posture for every data lake bucket.

There is exactly one SecurityPolicy and it is mapped over all layers. The helpers
below render it into the request shapes of the S3 API so the reconciler can put
them and compare them with what S3 reports back.
"""

import json
from typing import Dict

from datalake.models import LAYERS, SecurityPolicy


_UNIFORM_POLICY = SecurityPolicy()


def build_security_policy(layer: str) -> SecurityPolicy:
    """
    Return the security policy for a layer.

    The layer argument exists so callers map one function over all layers; the
    result is identical for every layer and cannot be customized.
    """
    if layer not in LAYERS:
        raise KeyError(layer)
    return _UNIFORM_POLICY


def versioning_configuration(policy: SecurityPolicy) -> Dict[str, str]:
    return {"Status": "Enabled" if policy.versioning_enabled else "Suspended"}


def encryption_configuration(policy: SecurityPolicy) -> dict:
    """ServerSideEncryptionConfiguration with a provider-managed key and S3 Bucket Keys."""
    return {
        "Rules": [
            {
                "ApplyServerSideEncryptionByDefault": {"SSEAlgorithm": policy.sse_algorithm},
                "BucketKeyEnabled": policy.bucket_key_enabled,
            }
        ]
    }


def public_access_block_configuration(policy: SecurityPolicy) -> Dict[str, bool]:
    return {
        "BlockPublicAcls": policy.block_public_acls,
        "IgnorePublicAcls": policy.ignore_public_acls,
        "BlockPublicPolicy": policy.block_public_policy,
        "RestrictPublicBuckets": policy.restrict_public_buckets,
    }


def tls_only_bucket_policy(bucket_name: str) -> str:
    """
    Bucket policy denying every request not sent over TLS.

    Matches the statement CDK generates for `enforce_ssl=True`.
    """
    document = {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Sid": "DenyInsecureTransport",
                "Effect": "Deny",
                "Principal": {"AWS": "*"},
                "Action": "s3:*",
                "Resource": [
                    f"arn:aws:s3:::{bucket_name}",
                    f"arn:aws:s3:::{bucket_name}/*",
                ],
                "Condition": {"Bool": {"aws:SecureTransport": "false"}},
            }
        ],
    }
    return json.dumps(document, sort_keys=True)


def encryption_matches(policy: SecurityPolicy, observed: dict) -> bool:
    """Compare a GetBucketEncryption ServerSideEncryptionConfiguration with the policy."""
    rules = (observed or {}).get("Rules") or []
    for rule in rules:
        default = rule.get("ApplyServerSideEncryptionByDefault") or {}
        if (
            default.get("SSEAlgorithm") == policy.sse_algorithm
            and bool(rule.get("BucketKeyEnabled")) == policy.bucket_key_enabled
        ):
            return True
    return False


def bucket_policy_matches(bucket_name: str, observed: str) -> bool:
    """Compare a GetBucketPolicy document with the TLS-only statement, ignoring key order."""
    try:
        return json.loads(observed) == json.loads(tls_only_bucket_policy(bucket_name))
    except (TypeError, ValueError):
        return False
