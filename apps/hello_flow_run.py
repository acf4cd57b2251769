from __future__ import annotations

import argparse
import os
from collections.abc import Sequence
from pathlib import Path

from runlog import flow, get_run_logger, set_logging_context, setup_logging, task
from runlog.contracts import TrackingClient
from runlog.tracking import MlflowTrackingClient


def _resolve_tracking_uri() -> str:
    tracking_uri = os.environ.get("MLFLOW_TRACKING_URI")
    return tracking_uri or "http://localhost:5000"


def _resolve_experiment_name() -> str:
    return os.environ.get("MLFLOW_EXPERIMENT", "runlog-dev")


@task(task_run_name="hello-task")
def hello_task(name: str) -> str:
    get_run_logger().info("Hello from a task!")
    print(f"Hello, {name}!")
    return f"greeted {name}"


@flow(name="hello", flow_run_name="gray-dingo")
def hello(name: str) -> str:
    get_run_logger().info("Greeting %s", name)
    return hello_task(name)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the hello flow with contextual run logging.")
    parser.add_argument("--name", default="world", help="Who to greet")
    parser.add_argument(
        "--settings",
        dest="settings_path",
        type=Path,
        default=None,
        help="Optional logging settings YAML (defaults to ~/.runlog/logging.yml)",
    )
    parser.add_argument(
        "--log-prints",
        action="store_true",
        help="Route print output of the flow and its tasks to the run loggers",
    )
    parser.add_argument(
        "--mlflow",
        action="store_true",
        help="Store flow-run logs on an MLflow run (MLFLOW_TRACKING_URI, MLFLOW_EXPERIMENT)",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    tracking: TrackingClient | None = None
    if args.mlflow:
        tracking = MlflowTrackingClient(
            tracking_uri=_resolve_tracking_uri(),
            experiment_name=_resolve_experiment_name(),
        )

    overrides = {"log_prints": True} if args.log_prints else {}
    context = setup_logging(
        tracking=tracking,
        settings_path=args.settings_path,
        overrides=overrides,
    )
    previous = set_logging_context(context)
    try:
        result = hello(args.name)
    finally:
        set_logging_context(previous)
        context.close()

    print(result)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
