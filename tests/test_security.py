"""
Tests for the uniform security posture.
"""

import json

import pytest

from datalake.models import LAYERS, SecurityPolicy
from datalake.plan import build_plan
from datalake.security import (
    bucket_policy_matches,
    build_security_policy,
    encryption_configuration,
    encryption_matches,
    public_access_block_configuration,
    tls_only_bucket_policy,
    versioning_configuration,
)


@pytest.mark.parametrize("layer", LAYERS)
def test_every_layer_gets_the_full_security_policy(layer: str) -> None:
    policy = build_security_policy(layer)
    assert policy.versioning_enabled is True
    assert policy.sse_algorithm == "AES256"
    assert policy.bucket_key_enabled is True
    assert policy.block_public_acls is True
    assert policy.block_public_policy is True
    assert policy.ignore_public_acls is True
    assert policy.restrict_public_buckets is True
    assert policy.enforce_ssl is True


def test_policy_is_identical_across_layers(demo_config) -> None:
    plan = build_plan(demo_config)
    policies = {lp.security for lp in plan.layers}
    assert policies == {SecurityPolicy()}


def test_unknown_layer_has_no_policy() -> None:
    with pytest.raises(KeyError):
        build_security_policy("scratch")


def test_s3_request_shapes() -> None:
    policy = build_security_policy("raw")
    assert versioning_configuration(policy) == {"Status": "Enabled"}
    assert encryption_configuration(policy) == {
        "Rules": [
            {
                "ApplyServerSideEncryptionByDefault": {"SSEAlgorithm": "AES256"},
                "BucketKeyEnabled": True,
            }
        ]
    }
    assert public_access_block_configuration(policy) == {
        "BlockPublicAcls": True,
        "IgnorePublicAcls": True,
        "BlockPublicPolicy": True,
        "RestrictPublicBuckets": True,
    }


def test_encryption_matches_requires_bucket_key() -> None:
    policy = build_security_policy("raw")
    assert encryption_matches(policy, encryption_configuration(policy))
    without_bucket_key = {
        "Rules": [{"ApplyServerSideEncryptionByDefault": {"SSEAlgorithm": "AES256"}, "BucketKeyEnabled": False}]
    }
    assert not encryption_matches(policy, without_bucket_key)
    assert not encryption_matches(policy, None)


def test_tls_only_policy_denies_insecure_transport() -> None:
    document = json.loads(tls_only_bucket_policy("demo-dev-raw-a1b2c3d4"))
    statement = document["Statement"][0]
    assert statement["Effect"] == "Deny"
    assert statement["Condition"] == {"Bool": {"aws:SecureTransport": "false"}}
    assert "arn:aws:s3:::demo-dev-raw-a1b2c3d4/*" in statement["Resource"]


def test_bucket_policy_matches_ignores_formatting() -> None:
    name = "demo-dev-raw-a1b2c3d4"
    pretty = json.dumps(json.loads(tls_only_bucket_policy(name)), indent=4)
    assert bucket_policy_matches(name, pretty)
    assert not bucket_policy_matches(name, tls_only_bucket_policy("other-bucket"))
    assert not bucket_policy_matches(name, None)
    assert not bucket_policy_matches(name, "not json")
