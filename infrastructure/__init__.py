# Tiered Storage Data Lake - Infrastructure Package
#
# Do not import the CDK app (or stacks) at package import time.
# CDK executes `infrastructure/app.py` directly (see `cdk.json`).

__all__ = []
