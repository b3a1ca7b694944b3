"""tier-guard CLI — command-line interface for Tier-Guard.

Commands:
    tiers       Show the tier limits table
    check       Check a feature or quota for a tier
    assess      Assess the impact of a downgrade on a resource snapshot
    resolve     Resolve the RBAC context for an account
    validate    Validate a tier policy file
"""

from __future__ import annotations

import json
import logging
import sys

import click
import yaml

from tier_guard import __version__
from tier_guard.config import TierGuardConfig, load_config
from tier_guard.downgrade.assessor import InvalidTransitionError
from tier_guard.models import (
    RESOURCE_LABELS,
    DowngradeOptions,
    DowngradeStrategy,
    FeatureKey,
    ImpactStatus,
    ResourceType,
    UnknownTierError,
)
from tier_guard.policy.table import DEFAULT_POLICY, ConfigurationError, TierPolicy, load_policy
from tier_guard.sdk.client import TierGuard
from tier_guard.snapshot.loader import SnapshotError, load_account, load_snapshot

_STATUS_COLORS = {
    ImpactStatus.RETAINED: "green",
    ImpactStatus.RESTRICTED: "yellow",
    ImpactStatus.REMOVED: "red",
}


def _resolve_cfg() -> TierGuardConfig:
    """Load config from tier-guard.yaml (auto-discover, never error)."""
    try:
        return load_config()
    except (OSError, ValueError, yaml.YAMLError):
        return TierGuardConfig()


def _load_policy(explicit: str | None, cfg: TierGuardConfig) -> TierPolicy:
    """Return the policy from --policy > config file > built-in table."""
    path = explicit or cfg.policy
    if path is None:
        return DEFAULT_POLICY
    try:
        return load_policy(path)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _parse_keep(values: tuple[str, ...]) -> dict[ResourceType, list[str]] | None:
    """Parse ``--keep links=a,b`` options into per-type selections."""
    if not values:
        return None
    selections: dict[ResourceType, list[str]] = {}
    for value in values:
        type_name, sep, ids = value.partition("=")
        if not sep:
            raise click.BadParameter(f"expected TYPE=ID[,ID...], got {value!r}", param_hint="--keep")
        try:
            resource_type = ResourceType(type_name.strip())
        except ValueError:
            allowed = ", ".join(t.value for t in ResourceType)
            raise click.BadParameter(
                f"unknown resource type {type_name!r} (expected one of: {allowed})",
                param_hint="--keep",
            ) from None
        selections.setdefault(resource_type, []).extend(
            i.strip() for i in ids.split(",") if i.strip()
        )
    return selections


# --- Root group ---


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Tier-Guard: tier policy, feature gating and downgrade assessment."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
        )


# --- tiers command ---


@cli.command()
@click.option("--policy", default=None, help="Path to tier policy YAML file")
@click.option("--json-output", is_flag=True, help="Output as JSON")
def tiers(policy: str | None, json_output: bool) -> None:
    """Show the tier limits table."""
    table = _load_policy(policy, _resolve_cfg())

    if json_output:
        click.echo(json.dumps(table.to_dict(), indent=2))
        return

    header = f"  {'feature':<24}" + "".join(f"{t.value:>12}" for t in table.tiers)
    click.echo(click.style(header, bold=True))
    for key in FeatureKey:
        row = f"  {key.value:<24}"
        for tier in table.tiers:
            row += f"{str(table.limit(tier, key)):>12}"
        click.echo(row)


# --- check command ---


@cli.command()
@click.argument("tier")
@click.argument("feature")
@click.option("--usage", type=int, default=None, help="Current usage count for quota features")
@click.option("--policy", default=None, help="Path to tier policy YAML file")
@click.option("--json-output", is_flag=True, help="Output as JSON")
def check(
    tier: str,
    feature: str,
    usage: int | None,
    policy: str | None,
    json_output: bool,
) -> None:
    """Check whether TIER permits FEATURE."""
    guard = TierGuard(policy=_load_policy(policy, _resolve_cfg()))

    try:
        result = guard.can_access(tier, feature, usage)
    except (UnknownTierError, ConfigurationError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if json_output:
        click.echo(json.dumps(result.model_dump(mode="json"), indent=2))
        return

    if result.allowed:
        click.echo(click.style("ALLOWED", fg="green", bold=True) + f" — {result.feature.value}")
    else:
        click.echo(
            click.style("DENIED", fg="red", bold=True)
            + f" — {result.reason or result.feature.value}"
        )
    click.echo(f"  tier:  {result.current_tier}")
    if result.limit is not None:
        click.echo(f"  limit: {result.limit}")
    if result.required_tier is not None:
        click.echo(f"  requires: {result.required_tier}")


# --- assess command ---


@cli.command()
@click.argument("current_tier")
@click.argument("target_tier")
@click.argument("snapshot_file")
@click.option(
    "--strategy",
    type=click.Choice([s.value for s in DowngradeStrategy]),
    default=None,
    help="Selection strategy (default from config, else keep-default)",
)
@click.option(
    "--keep", "keep", multiple=True,
    help="Ids to keep for user-choice, as TYPE=ID[,ID...] (repeatable)",
)
@click.option("--notify-user", is_flag=True, help="Mark the assessment for user notification")
@click.option("--policy", default=None, help="Path to tier policy YAML file")
@click.option("--json-output", is_flag=True, help="Output as JSON")
def assess(
    current_tier: str,
    target_tier: str,
    snapshot_file: str,
    strategy: str | None,
    keep: tuple[str, ...],
    notify_user: bool,
    policy: str | None,
    json_output: bool,
) -> None:
    """Assess a downgrade from CURRENT_TIER to TARGET_TIER."""
    cfg = _resolve_cfg()
    guard = TierGuard(policy=_load_policy(policy, cfg))

    options = DowngradeOptions(
        strategy=DowngradeStrategy(strategy) if strategy else cfg.default_strategy,
        user_selections=_parse_keep(keep),
        dry_run=True,
        notify_user=notify_user or cfg.notify_user,
    )

    try:
        snapshot = load_snapshot(snapshot_file)
        preview = guard.preview_downgrade(current_tier, target_tier, snapshot, options)
    except (SnapshotError, UnknownTierError, InvalidTransitionError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    assessment = preview.assessment
    if json_output:
        data = preview.model_dump(mode="json")
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(
        click.style(
            f"{assessment.from_tier.value.upper()} -> {assessment.to_tier.value.upper()}",
            bold=True,
        )
        + f"  ({assessment.strategy})"
    )
    for impact in assessment.per_resource_type.values():
        label = RESOURCE_LABELS[impact.resource_type]
        status = click.style(f"[{impact.status}]", fg=_STATUS_COLORS[impact.status])
        click.echo(
            f"  {label:<14} {status}  keep {len(impact.keep_ids)}"
            f" / {impact.current_count} (limit {impact.target_limit})"
        )
        if impact.remove_ids:
            click.echo(f"    remove: {', '.join(impact.remove_ids)}")

    for change in assessment.feature_changes:
        click.echo(f"  - {change.detail}")

    if assessment.requires_user_action:
        click.echo(click.style("\nUser action required:", fg="yellow", bold=True))
        for action in preview.required_actions:
            click.echo(f"  {action}")
    elif not assessment.warnings:
        click.echo("\nNo resources will be removed.")


# --- resolve command ---


@cli.command()
@click.argument("account_file")
@click.option("--context", "context_id", default=None, help="Selected context id (default: self)")
@click.option("--json-output", is_flag=True, help="Output as JSON")
def resolve(account_file: str, context_id: str | None, json_output: bool) -> None:
    """Resolve the RBAC context for the account in ACCOUNT_FILE."""
    try:
        account = load_account(account_file)
    except SnapshotError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    guard = TierGuard()
    context = guard.resolve_context(account, context_id)

    if json_output:
        data = context.model_dump(mode="json")
        data["available_contexts"] = guard.available_contexts(account)
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(
        click.style(context.context_type.value.upper(), bold=True)
        + f" — {context.selected_context_id}"
    )
    click.echo(f"  roles:       {', '.join(context.roles) or '(none)'}")
    click.echo(f"  permissions: {', '.join(context.permissions) or '(none)'}")
    if context_id and context.selected_context_id != context_id:
        click.echo(click.style(f"  context {context_id!r} not available, using self", fg="yellow"))


# --- validate command ---


@cli.command()
@click.option("--policy", default=None, help="Path to tier policy YAML file")
@click.option("--json-output", is_flag=True, help="Output as JSON")
def validate(policy: str | None, json_output: bool) -> None:
    """Validate a tier policy file (default: config, else built-in table)."""
    cfg = _resolve_cfg()
    path = policy or cfg.policy

    if path is None:
        table, source, error = DEFAULT_POLICY, "built-in", None
    else:
        source = path
        try:
            table, error = load_policy(path), None
        except ConfigurationError as e:
            table, error = None, str(e)

    if json_output:
        click.echo(json.dumps({
            "valid": error is None,
            "source": source,
            "tiers": [t.value for t in table.tiers] if table else [],
            "error": error,
        }, indent=2))
    elif error is not None:
        click.echo(click.style("FAIL", fg="red") + f"  policy: {error}")
    else:
        label = "built-in policy" if path is None else "policy"
        click.echo(
            click.style("OK", fg="green")
            + f"  {label}: {len(table.tiers)} tier(s), {len(FeatureKey)} feature(s) loaded"
        )

    if error is not None:
        sys.exit(1)
