"""Main entry point for the ALB rule controller.

Runs one reconciliation pass over a single listener using configuration
from the environment. An outer scheduler (cron, a Kubernetes CronJob, or
a parent controller) is expected to call it repeatedly; every pass starts
from freshly described remote state.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

from .config import Config, ConfigurationError
from .elbv2 import Elbv2RuleClient, RuleClient
from .errors import ReconcileError
from .events import EventSink, LoggingEventSink
from .listener import Listener, ListenerPassResult, ListenerReconciler
from .rule import Rule, RuleReconciler, RuleTransition
from .spec_loader import SpecLoadError, build_desired_rules, build_target_groups, load_rules_spec

# LogRecord attributes that are not user-supplied ``extra`` fields
_RESERVED_RECORD_KEYS = frozenset(
    (
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    )
)

# Handler installed by the last setup_logging call
_handler: logging.Handler | None = None


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: int = logging.INFO, json_output: bool = True) -> None:
    """Configure root logging, JSON lines on stdout by default."""
    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )

    global _handler
    root_logger = logging.getLogger()
    if _handler is not None:
        root_logger.removeHandler(_handler)
    root_logger.addHandler(handler)
    _handler = handler
    root_logger.setLevel(level)

    # Reduce noise from the AWS SDK
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_listener_reconciler(
    client: RuleClient,
    events: EventSink | None = None,
) -> ListenerReconciler:
    """Wire a listener reconciler around a rule client."""
    rule_reconciler = RuleReconciler(client, events or LoggingEventSink())
    return ListenerReconciler(client, rule_reconciler)


def _load_balancer_name(listener_arn: str) -> str:
    # arn:...:listener/app/<name>/<lb-id>/<listener-id>
    parts = listener_arn.split("/")
    return parts[2] if len(parts) > 2 else listener_arn


def _prepare_listener(
    config: Config,
    client: RuleClient,
    events: EventSink | None,
) -> tuple[ListenerReconciler, Listener, list[Rule]]:
    if config.rules_file is None:
        raise ConfigurationError("RULES_FILE is required to reconcile a listener")

    spec = load_rules_spec(config.rules_file)
    listener_arn = config.listener_arn or spec.listener_arn
    if not listener_arn:
        raise ConfigurationError("ALB_LISTENER_ARN is required (or listenerArn in the rules file)")

    listener_reconciler = build_listener_reconciler(client, events)
    listener = listener_reconciler.load_listener(
        name=_load_balancer_name(listener_arn),
        listener_arn=listener_arn,
        target_groups=build_target_groups(spec),
    )
    return listener_reconciler, listener, build_desired_rules(spec)


def plan_listener(
    config: Config,
    client: RuleClient,
    events: EventSink | None = None,
) -> list[tuple[str, RuleTransition]]:
    """Decide the transition of every rule of the configured listener.

    Returns:
        ``(condition summary, transition)`` pairs, one per paired rule.

    Raises:
        SpecLoadError: If the rules file is missing or invalid.
        ConfigurationError: If listener ARN or rules file are not configured.
        RemoteCallError: If the listener cannot be described.
    """
    listener_reconciler, listener, desired = _prepare_listener(config, client, events)
    return [
        (rule.condition_summary(), transition)
        for rule, transition in listener_reconciler.plan(listener, desired)
    ]


def apply_listener(
    config: Config,
    client: RuleClient,
    events: EventSink | None = None,
) -> ListenerPassResult:
    """Run one reconciliation pass over the configured listener.

    Raises:
        SpecLoadError: If the rules file is missing or invalid.
        ConfigurationError: If listener ARN or rules file are not configured.
        RemoteCallError: If the listener cannot be described.
    """
    listener_reconciler, listener, desired = _prepare_listener(config, client, events)
    return listener_reconciler.run_pass(listener, desired)


def main() -> int:
    """Run the controller once.

    Returns:
        Exit code (0 for success, 1 for configuration or spec errors,
        2 if any rule failed to reconcile).
    """
    try:
        config = Config.from_env()
    except ConfigurationError as e:
        setup_logging()
        logging.getLogger(__name__).error("Configuration error", extra={"error": str(e)})
        return 1

    setup_logging(config.log_level_value, config.enable_json_logging)
    logger = logging.getLogger(__name__)

    logger.info(
        "Starting ALB rule controller",
        extra={
            "region": config.region,
            "listener_arn": config.listener_arn,
            "dry_run": config.dry_run,
        },
    )

    client = Elbv2RuleClient.from_config(config)
    try:
        if config.dry_run:
            for conditions, transition in plan_listener(config, client):
                logger.info(
                    "Planned rule transition",
                    extra={"conditions": conditions, "transition": transition.value},
                )
            return 0
        result = apply_listener(config, client)
    except (ConfigurationError, SpecLoadError) as e:
        logger.error("Failed to load desired rules", extra={"error": str(e)})
        return 1
    except ReconcileError as e:
        logger.error(
            "Listener reconciliation failed",
            extra={"error": str(e), "error_type": type(e).__name__},
        )
        return 2

    return 0 if result.success else 2


def run() -> None:
    """Entry point for the controller process."""
    sys.exit(main())


if __name__ == "__main__":
    run()
