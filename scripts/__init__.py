# Operator scripts for the data lake.
#
# A package so the `manage-datalake` console script resolves after a regular install.

__all__ = []
