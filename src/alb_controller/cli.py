"""ALB rules CLI (alb-rules).

Operator tool for inspecting and reconciling a listener's path rules.

Usage:
    alb-rules plan  --listener-arn ARN --rules rules.yaml   # Show transitions
    alb-rules apply --listener-arn ARN --rules rules.yaml   # Reconcile once
    alb-rules vpc subnet-0abc subnet-0def                   # Resolve VPC id
"""

from __future__ import annotations

from pathlib import Path

import click

from .config import Config, ConfigurationError
from .ec2 import Ec2Lookups
from .elbv2 import Elbv2RuleClient
from .errors import ReconcileError
from .main import apply_listener, plan_listener, setup_logging

TRANSITION_COLORS = {
    "create": "green",
    "modify": "yellow",
    "delete": "red",
}


def build_config(
    region: str,
    listener_arn: str | None,
    rules: Path | None,
    dry_run: bool,
    log_level: str,
) -> Config:
    """Build a validated Config from CLI options.

    Raises:
        click.ClickException: If validation fails.
    """
    try:
        return Config(
            region=region,
            listener_arn=listener_arn,
            rules_file=rules,
            dry_run=dry_run,
            log_level=log_level,
            enable_json_logging=False,
        )
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version="0.1.0", prog_name="alb-rules")
@click.option("--region", envvar="AWS_REGION", required=True, help="AWS region")
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level for controller logs (default: WARNING)",
)
@click.pass_context
def cli(ctx: click.Context, region: str, log_level: str) -> None:
    """ALB rules CLI (alb-rules).

    Reconciles the path-based rules of an application load balancer
    listener against a YAML file of desired rules.

    \b
    Quick Start:
        alb-rules plan --listener-arn ARN --rules rules.yaml
        alb-rules apply --listener-arn ARN --rules rules.yaml
    """
    ctx.ensure_object(dict)
    ctx.obj["region"] = region
    ctx.obj["log_level"] = log_level.upper()


def _listener_options(func):
    func = click.option(
        "--rules",
        "rules",
        envvar="RULES_FILE",
        required=True,
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="YAML file of desired rules",
    )(func)
    func = click.option(
        "--listener-arn",
        envvar="ALB_LISTENER_ARN",
        default=None,
        help="Listener ARN (defaults to listenerArn in the rules file)",
    )(func)
    return func


# =============================================================================
# Reconciliation Commands
# =============================================================================


@cli.command()
@_listener_options
@click.pass_context
def plan(ctx: click.Context, listener_arn: str | None, rules: Path) -> None:
    """Show the transition each rule would take, without changing anything."""
    config = build_config(ctx.obj["region"], listener_arn, rules, True, ctx.obj["log_level"])
    setup_logging(config.log_level_value, json_output=False)

    try:
        planned = plan_listener(config, Elbv2RuleClient.from_config(config))
    except ReconcileError as e:
        raise click.ClickException(str(e)) from e

    pending = 0
    for conditions, transition in planned:
        color = TRANSITION_COLORS.get(transition.value)
        click.echo(f"  {click.style(f'{transition.value:<14}', fg=color)} {conditions}")
        if transition.is_mutating:
            pending += 1

    click.echo(f"\n{pending} change(s) pending")


@cli.command()
@_listener_options
@click.pass_context
def apply(ctx: click.Context, listener_arn: str | None, rules: Path) -> None:
    """Reconcile the listener once."""
    config = build_config(ctx.obj["region"], listener_arn, rules, False, ctx.obj["log_level"])
    setup_logging(config.log_level_value, json_output=False)

    try:
        result = apply_listener(config, Elbv2RuleClient.from_config(config))
    except ReconcileError as e:
        raise click.ClickException(str(e)) from e

    for transition, count in sorted(result.transitions.items(), key=lambda i: i[0].value):
        click.echo(f"  {transition.value:<14} {count}")

    for failure in result.failures:
        click.secho(
            f"  failed {failure.transition.value}: "
            f"{failure.rule.condition_summary()}: {failure.error}",
            fg="red",
            err=True,
        )

    if not result.success:
        raise click.ClickException(f"{len(result.failures)} rule(s) failed to reconcile")

    click.secho(f"✓ {result.changes_applied} change(s) applied", fg="green")


# =============================================================================
# Lookup Commands
# =============================================================================


@cli.command()
@click.argument("subnet_ids", nargs=-1, required=True)
@click.pass_context
def vpc(ctx: click.Context, subnet_ids: tuple[str, ...]) -> None:
    """Resolve the VPC that SUBNET_IDS belong to."""
    config = build_config(ctx.obj["region"], None, None, True, ctx.obj["log_level"])
    setup_logging(config.log_level_value, json_output=False)

    try:
        vpc_id = Ec2Lookups.from_config(config).get_vpc_id(list(subnet_ids))
    except ReconcileError as e:
        raise click.ClickException(str(e)) from e

    click.echo(vpc_id)


def main() -> None:
    """Entry point for the alb-rules CLI."""
    cli()


if __name__ == "__main__":
    main()
