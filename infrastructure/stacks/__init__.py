# CDK stacks for the data lake.

__all__ = []
