"""
Pytest configuration for the data lake test suite.

Provides an in-memory stand-in for the boto3 S3 client covering the calls the
reconciler makes. It raises real botocore ClientErrors with the same error codes
S3 returns, so the reconciler's error mapping is exercised as-is.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Set

import pytest
from botocore.exceptions import ClientError

from datalake.models import DeploymentConfig


def _client_error(code: str, operation: str, message: str = "") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message or code}}, operation)


class FakeS3Client:
    """
    Minimal S3 client fake.

    Attributes:
        buckets: bucket name -> stored configuration
        foreign_buckets: names that exist but belong to another account
        failures: method name -> number of upcoming calls that raise InternalError
        dropped_writes: put methods whose writes are acknowledged but never stored
        calls: every method invoked, in order
    """

    def __init__(self) -> None:
        self.buckets: Dict[str, Dict[str, Any]] = {}
        self.foreign_buckets: Set[str] = set()
        self.failures: Dict[str, int] = {}
        self.dropped_writes: Set[str] = set()
        self.calls: List[str] = []

    # helpers -------------------------------------------------------------

    def _record(self, method: str) -> None:
        self.calls.append(method)
        remaining = self.failures.get(method, 0)
        if remaining:
            self.failures[method] = remaining - 1
            raise _client_error("InternalError", method)

    def _bucket(self, name: str, operation: str) -> Dict[str, Any]:
        if name not in self.buckets:
            raise _client_error("NoSuchBucket", operation)
        return self.buckets[name]

    def _store(self, method: str, name: str, key: str, value: Any) -> None:
        bucket = self._bucket(name, method)
        if method in self.dropped_writes:
            return
        bucket[key] = copy.deepcopy(value)

    def writes(self) -> List[str]:
        return [c for c in self.calls if c.startswith(("put_", "create_", "delete_"))]

    def add_object(self, name: str, key: str) -> None:
        self.buckets[name]["objects"].append(key)

    # bucket --------------------------------------------------------------

    def head_bucket(self, Bucket: str) -> dict:
        self._record("head_bucket")
        if Bucket in self.foreign_buckets:
            raise _client_error("403", "HeadBucket", "Forbidden")
        if Bucket not in self.buckets:
            raise _client_error("404", "HeadBucket", "Not Found")
        return {}

    def create_bucket(self, Bucket: str, CreateBucketConfiguration: Optional[dict] = None) -> dict:
        self._record("create_bucket")
        if Bucket in self.foreign_buckets:
            raise _client_error("BucketAlreadyExists", "CreateBucket")
        if Bucket in self.buckets:
            raise _client_error("BucketAlreadyOwnedByYou", "CreateBucket")
        self.buckets[Bucket] = {
            "location": (CreateBucketConfiguration or {}).get("LocationConstraint"),
            "objects": [],
        }
        return {"Location": f"/{Bucket}"}

    def delete_bucket(self, Bucket: str) -> dict:
        self._record("delete_bucket")
        bucket = self._bucket(Bucket, "DeleteBucket")
        if bucket["objects"]:
            raise _client_error("BucketNotEmpty", "DeleteBucket")
        del self.buckets[Bucket]
        return {}

    def list_object_versions(self, Bucket: str, MaxKeys: int = 1000) -> dict:
        self._record("list_object_versions")
        objects = self._bucket(Bucket, "ListObjectVersions")["objects"]
        return {"Versions": [{"Key": k, "VersionId": "1"} for k in objects[:MaxKeys]]}

    # security ------------------------------------------------------------

    def get_bucket_versioning(self, Bucket: str) -> dict:
        self._record("get_bucket_versioning")
        versioning = self._bucket(Bucket, "GetBucketVersioning").get("versioning")
        return dict(versioning or {})

    def put_bucket_versioning(self, Bucket: str, VersioningConfiguration: dict) -> dict:
        self._record("put_bucket_versioning")
        self._store("put_bucket_versioning", Bucket, "versioning", VersioningConfiguration)
        return {}

    def get_bucket_encryption(self, Bucket: str) -> dict:
        self._record("get_bucket_encryption")
        encryption = self._bucket(Bucket, "GetBucketEncryption").get("encryption")
        if encryption is None:
            raise _client_error("ServerSideEncryptionConfigurationNotFoundError", "GetBucketEncryption")
        return {"ServerSideEncryptionConfiguration": copy.deepcopy(encryption)}

    def put_bucket_encryption(self, Bucket: str, ServerSideEncryptionConfiguration: dict) -> dict:
        self._record("put_bucket_encryption")
        self._store("put_bucket_encryption", Bucket, "encryption", ServerSideEncryptionConfiguration)
        return {}

    def get_public_access_block(self, Bucket: str) -> dict:
        self._record("get_public_access_block")
        block = self._bucket(Bucket, "GetPublicAccessBlock").get("public_access_block")
        if block is None:
            raise _client_error("NoSuchPublicAccessBlockConfiguration", "GetPublicAccessBlock")
        return {"PublicAccessBlockConfiguration": dict(block)}

    def put_public_access_block(self, Bucket: str, PublicAccessBlockConfiguration: dict) -> dict:
        self._record("put_public_access_block")
        self._store("put_public_access_block", Bucket, "public_access_block", PublicAccessBlockConfiguration)
        return {}

    def get_bucket_policy(self, Bucket: str) -> dict:
        self._record("get_bucket_policy")
        policy = self._bucket(Bucket, "GetBucketPolicy").get("policy")
        if policy is None:
            raise _client_error("NoSuchBucketPolicy", "GetBucketPolicy")
        return {"Policy": policy}

    def put_bucket_policy(self, Bucket: str, Policy: str) -> dict:
        self._record("put_bucket_policy")
        self._store("put_bucket_policy", Bucket, "policy", Policy)
        return {}

    # tags & lifecycle ----------------------------------------------------

    def get_bucket_tagging(self, Bucket: str) -> dict:
        self._record("get_bucket_tagging")
        tags = self._bucket(Bucket, "GetBucketTagging").get("tags")
        if tags is None:
            raise _client_error("NoSuchTagSet", "GetBucketTagging")
        return {"TagSet": copy.deepcopy(tags)}

    def put_bucket_tagging(self, Bucket: str, Tagging: dict) -> dict:
        self._record("put_bucket_tagging")
        self._store("put_bucket_tagging", Bucket, "tags", Tagging["TagSet"])
        return {}

    def get_bucket_lifecycle_configuration(self, Bucket: str) -> dict:
        self._record("get_bucket_lifecycle_configuration")
        lifecycle = self._bucket(Bucket, "GetBucketLifecycleConfiguration").get("lifecycle")
        if lifecycle is None:
            raise _client_error("NoSuchLifecycleConfiguration", "GetBucketLifecycleConfiguration")
        return {"Rules": copy.deepcopy(lifecycle["Rules"])}

    def put_bucket_lifecycle_configuration(self, Bucket: str, LifecycleConfiguration: dict) -> dict:
        self._record("put_bucket_lifecycle_configuration")
        self._store("put_bucket_lifecycle_configuration", Bucket, "lifecycle", LifecycleConfiguration)
        return {}

    def delete_bucket_lifecycle(self, Bucket: str) -> dict:
        self._record("delete_bucket_lifecycle")
        self._bucket(Bucket, "DeleteBucketLifecycle").pop("lifecycle", None)
        return {}


@pytest.fixture
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def demo_config() -> DeploymentConfig:
    return DeploymentConfig(
        project_name="demo",
        environment="dev",
        region="eu-central-1",
        suffix="a1b2c3d4",
    )
