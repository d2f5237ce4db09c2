# Tiered storage data lake - planning core and S3 reconciler.
#
# Keep this import-light: the CDK app imports datalake.plan during synth and the
# CLI imports boto3-backed modules only when it needs them.

__all__ = []
