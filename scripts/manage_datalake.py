"""
Operator CLI for the tiered storage data lake.

Commands
--------
  plan            Print the declared buckets, security policy and lifecycle rules (no AWS calls)
  apply           Converge S3 to the plan via the S3 API (idempotent)
  outputs         Print bucket names + region as JSON for downstream tooling
  destroy         Delete the layer buckets; refuses if any bucket still holds objects
  classify        Show which transitions an object of a given age is eligible for
  rotate-suffix   Generate and persist a new bucket-name suffix (after a naming conflict)

Configuration is resolved from flags, then DATALAKE_* environment variables (.env
supported), then defaults. The suffix always comes from the state file.

Exit codes
----------
  0    success
  2    invalid configuration, naming conflict, teardown blocked
  3    security policy could not be applied
  4    other AWS API error
  130  interrupted
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from datalake import config as _config
from datalake.errors import DataLakeError, PolicyApplicationFailure
from datalake.lifecycle import eligible_transitions, lifecycle_rule_for, target_storage_class
from datalake.models import LAYERS
from datalake.observability import configure_logging
from datalake.plan import build_plan
from datalake.reconcile import DEFAULT_POLICY_ATTEMPTS, DEFAULT_RETRY_DELAY_SECONDS, Reconciler
from datalake.state import rotate_suffix


COMMANDS = ("plan", "apply", "outputs", "destroy", "classify", "rotate-suffix")


@dataclass(frozen=True)
class CliConfig:
    command: str
    project_name: Optional[str]
    environment: Optional[str]
    region: Optional[str]
    state_path: Path
    log_level: str
    dry_run: bool
    policy_attempts: int
    retry_delay_seconds: float
    layer: Optional[str]
    age_days: Optional[int]


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"{value!r} is not a valid integer") from exc
    if number < 0:
        raise argparse.ArgumentTypeError("value must be >= 0")
    return number


def parse_args(argv: Optional[list[str]] = None) -> CliConfig:
    parser = argparse.ArgumentParser(description="Plan, apply and tear down the tiered storage data lake.")
    parser.add_argument("command", choices=COMMANDS, help="Action to perform")
    parser.add_argument("--project-name", default=None, help="Naming prefix (default: DATALAKE_PROJECT_NAME)")
    parser.add_argument("--environment", default=None, help="Environment tag (default: DATALAKE_ENVIRONMENT)")
    parser.add_argument("--region", default=None, help="AWS region (default: DATALAKE_REGION / AWS_REGION)")
    parser.add_argument(
        "--state-path",
        default=None,
        help=f"Deployment state file holding the suffix (default: {_config.DEFAULT_STATE_PATH})",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help='Logging verbosity (default: DATALAKE_LOG_LEVEL or "INFO").',
    )
    parser.add_argument("--dry-run", action="store_true", help="apply: print the plan instead of calling AWS")
    parser.add_argument(
        "--policy-attempts",
        type=_non_negative_int,
        default=DEFAULT_POLICY_ATTEMPTS,
        help=f"Attempts per security sub-policy (default: {DEFAULT_POLICY_ATTEMPTS})",
    )
    parser.add_argument(
        "--retry-delay-seconds",
        type=float,
        default=DEFAULT_RETRY_DELAY_SECONDS,
        help=f"Delay between security policy attempts (default: {DEFAULT_RETRY_DELAY_SECONDS})",
    )
    parser.add_argument("--layer", choices=LAYERS, default=None, help="classify: layer of the object")
    parser.add_argument("--age-days", type=_non_negative_int, default=None, help="classify: object age in days")

    args = parser.parse_args(argv)

    if args.command == "classify" and (args.layer is None or args.age_days is None):
        parser.error("classify requires --layer and --age-days")
    if args.policy_attempts < 1:
        parser.error("--policy-attempts must be >= 1")

    # Defaults below may come from .env; load it the same way the CDK app does.
    _config.load_env()

    return CliConfig(
        command=args.command,
        project_name=args.project_name,
        environment=args.environment,
        region=args.region,
        state_path=Path(args.state_path).expanduser() if args.state_path else _config.get_state_path(),
        log_level=args.log_level or _config.get_log_level(),
        dry_run=bool(args.dry_run),
        policy_attempts=int(args.policy_attempts),
        retry_delay_seconds=float(args.retry_delay_seconds),
        layer=args.layer,
        age_days=args.age_days,
    )


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True))


def _classify(cfg: CliConfig) -> dict:
    rule = lifecycle_rule_for(cfg.layer)
    return {
        "layer": cfg.layer,
        "age_days": cfg.age_days,
        "eligible_transitions": [t.to_dict() for t in eligible_transitions(rule, cfg.age_days)],
        "target_storage_class": target_storage_class(rule, cfg.age_days),
    }


def run(cfg: CliConfig, *, log: logging.LoggerAdapter, s3_client=None) -> int:
    """Execute one command. `s3_client` is injected by tests; otherwise boto3 builds one."""
    if cfg.command == "classify":
        _print_json(_classify(cfg))
        return 0

    if cfg.command == "rotate-suffix":
        state = rotate_suffix(cfg.state_path)
        _print_json(state.to_dict())
        return 0

    deployment = _config.load_deployment_config(
        project_name=cfg.project_name,
        environment=cfg.environment,
        region=cfg.region,
        state_path=cfg.state_path,
        log=log,
    )
    plan = build_plan(deployment)

    if cfg.command == "plan" or (cfg.command == "apply" and cfg.dry_run):
        _print_json(plan.to_dict())
        return 0

    if cfg.command == "outputs":
        _print_json(plan.outputs())
        return 0

    if s3_client is None:
        # Import lazily so plan/classify work without AWS credentials or network.
        import boto3

        s3_client = boto3.client("s3", region_name=deployment.region)

    reconciler = Reconciler(
        s3_client,
        max_policy_attempts=cfg.policy_attempts,
        retry_delay_seconds=cfg.retry_delay_seconds,
        log=log,
    )

    if cfg.command == "apply":
        report = reconciler.apply(plan)
        _print_json({"apply": report.to_dict(), "outputs": plan.outputs()})
        return 0

    deleted = reconciler.teardown(plan)
    _print_json({"deleted": deleted})
    return 0


def main(argv: Optional[list[str]] = None, *, s3_client=None) -> int:
    cfg = parse_args(sys.argv[1:] if argv is None else argv)
    log: Optional[logging.LoggerAdapter] = None
    try:
        run_id = uuid.uuid4().hex[:12]
        log = configure_logging(run_id=run_id, level=cfg.log_level)
        log.info("starting %s", cfg.command)
        code = run(cfg, log=log, s3_client=s3_client)
        log.info("%s completed", cfg.command)
        return code
    except PolicyApplicationFailure as e:
        _log_error(log, "policy application failed: %s", e)
        print(f"Error: {e}. Re-run apply to retry convergence.", file=sys.stderr)
        return 3
    except DataLakeError as e:
        _log_error(log, "%s: %s", type(e).__name__, e)
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except (ClientError, BotoCoreError) as e:
        _log_error(log, "AWS error: %s", e)
        print(f"Error: AWS request failed: {e}", file=sys.stderr)
        return 4
    except KeyboardInterrupt:
        if log is not None:
            log.warning("interrupted by user")
        print("Interrupted.", file=sys.stderr)
        return 130


def _log_error(log: Optional[logging.LoggerAdapter], msg: str, *args) -> None:
    (log or logging.getLogger("datalake.cli")).error(msg, *args)


if __name__ == "__main__":
    raise SystemExit(main())
