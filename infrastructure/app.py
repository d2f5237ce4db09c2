"""AWS CDK Application for the tiered storage data lake."""

import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from aws_cdk import App, Environment, Tags

from datalake.config import load_deployment_config
from infrastructure.stacks.datalake_stack import DataLakeStack


def create_app(app: App = None) -> App:
    """
    Create and configure the CDK App.

    Project, environment and region come from DATALAKE_* environment variables
    (or CDK context `project_name` / `environment` / `region`); the bucket suffix
    comes from the persisted deployment state.

    Returns:
        Configured CDK App instance
    """
    app = app or App()

    deployment = load_deployment_config(
        project_name=app.node.try_get_context("project_name"),
        environment=app.node.try_get_context("environment"),
        region=app.node.try_get_context("region"),
    )

    # Global tags applied to all stacks in this app (bucket-level tags are set by the stack)
    Tags.of(app).add("Project", deployment.project_name)

    # CDK requires an account for non-environment-agnostic stacks; the CDK CLI
    # typically provides CDK_DEFAULT_ACCOUNT automatically.
    env_config = Environment(
        account=os.environ.get("CDK_DEFAULT_ACCOUNT"),
        region=deployment.region,
    )

    DataLakeStack(
        app,
        f"DataLake-{deployment.project_name}-{deployment.environment}",
        deployment=deployment,
        env=env_config,
        description=f"Tiered storage data lake - {deployment.project_name} ({deployment.environment})",
    )

    return app


if __name__ == "__main__":
    create_app().synth()
