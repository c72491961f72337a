"""Main CLI entrypoint for Reclaim."""

import json
import logging
import signal
import sys
import threading
from typing import Any, Dict, Optional

import click

from ..cleanup.models import ReclamationError, ReclamationReport
from ..config import ConfigError, ReclaimConfig
from ..obs.versions import ActiveVersionOracle
from ..orchestrator import ReclamationOrchestrator

logger = logging.getLogger(__name__)


@click.group()
@click.option('--json', 'output_json', is_flag=True, help='Output machine-readable JSON')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def main(ctx, output_json, verbose):
    """Reclaim - Delete superseded and closed-PR deployments."""
    ctx.ensure_object(dict)
    ctx.obj['json'] = output_json
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        stream=sys.stderr,
    )


def _json_output(data: Dict[str, Any]) -> None:
    """Output data as JSON."""
    click.echo(json.dumps(data, indent=None))


def _human_output(message: str) -> None:
    """Output human-readable message."""
    if not click.get_current_context().obj.get('json', False):
        click.echo(message)


def _fail(message: str, exit_code: int) -> None:
    if click.get_current_context().obj.get('json', False):
        _json_output({'error': message})
    else:
        click.echo(f"❌ {message}", err=True)
    sys.exit(exit_code)


def _load_config(base_name: Optional[str], **overrides) -> ReclaimConfig:
    config = ReclaimConfig.from_env(base_name=base_name).with_overrides(**overrides)
    config.validate()
    return config


def _install_cancel_handlers(cancel_event: threading.Event) -> None:
    def _handler(signum, frame):
        logger.warning(f"Received signal {signum}, stopping after the current deletion")
        cancel_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _handler)


def _report(report: ReclamationReport) -> None:
    if click.get_current_context().obj.get('json', False):
        _json_output(report.to_dict())
    else:
        _print_report_human(report)

    if report.failed or report.alias_failed or report.cancelled:
        sys.exit(1)
    sys.exit(0)


def _print_report_human(report: ReclamationReport) -> None:
    label = " (dry run)" if report.dry_run else ""
    _human_output(f"Sweep: {report.sweep}{label}")
    if report.skipped_settling:
        _human_output("⏳ Active version still settling, superseded stacks kept")
    for decision in report.decisions:
        icon = "🗑️ " if decision.decision.value == "delete" else "✋"
        _human_output(f"  {icon} {decision.name}: {decision.decision.value} ({decision.reason.value})")
    _human_output(f"Deleted: {len(report.deleted)}")
    _human_output(f"CNAME records deleted: {report.alias_records_deleted}")
    for name, reason in report.alias_skipped.items():
        _human_output(f"  no CNAME records deleted for {name} ({reason.value})")
    if report.failed:
        _human_output(f"❌ Failed: {', '.join(report.failed)}")
    if report.alias_failed:
        _human_output(f"❌ CNAME cleanup failed: {', '.join(report.alias_failed)}")
    if report.cancelled:
        _human_output("⚠️  Sweep cancelled before all stacks were processed")


def _run(sweep: str, config: ReclaimConfig) -> None:
    cancel_event = threading.Event()
    _install_cancel_handlers(cancel_event)
    orchestrator = ReclamationOrchestrator(config, cancel_event=cancel_event)
    try:
        if sweep == 'versions':
            report = orchestrator.sweep_superseded_versions()
        elif sweep == 'instances':
            report = orchestrator.sweep_closed_pull_request_instances()
        else:
            report = orchestrator.sweep_closed_pull_requests()
    except ConfigError as e:
        _fail(str(e), 2)
    except ReclamationError as e:
        _fail(f"Sweep aborted: {e}", 1)
    else:
        _report(report)


@main.command('sweep-versions')
@click.option('--base-name', help='Base stack name (RECLAIM_BASE_NAME)')
@click.option('--environment', help='Environment whose live versions are checked (RECLAIM_ENVIRONMENT)')
@click.option('--api-base-path', help='API base path of the status endpoint (RECLAIM_API_BASE_PATH)')
@click.option('--hosted-zone', 'hosted_zone_name', help='Hosted zone holding the CNAME records (RECLAIM_HOSTED_ZONE_NAME)')
@click.option('--cooldown', 'cooldown_seconds', type=float, help='Seconds to wait after each stack deletion')
@click.option('--dry-run', is_flag=True, help='Log decisions without deleting anything')
@click.pass_context
def sweep_versions(ctx, base_name, environment, api_base_path, hosted_zone_name, cooldown_seconds, dry_run):
    """Delete versioned stacks superseded by the active version."""
    try:
        config = _load_config(
            base_name,
            environment=environment,
            api_base_path=api_base_path,
            hosted_zone_name=hosted_zone_name,
            cooldown_seconds=cooldown_seconds,
            dry_run=dry_run or None,
        )
    except ConfigError as e:
        _fail(str(e), 2)
    _run('versions', config)


@main.command('sweep-prs')
@click.option('--base-name', help='Base stack name (RECLAIM_BASE_NAME)')
@click.option('--repository', help='GitHub repository, owner/name (RECLAIM_REPOSITORY)')
@click.option('--hosted-zone', 'hosted_zone_name', help='Hosted zone holding the CNAME records (RECLAIM_HOSTED_ZONE_NAME)')
@click.option('--cooldown', 'cooldown_seconds', type=float, help='Seconds to wait after each stack deletion')
@click.option('--dry-run', is_flag=True, help='Log decisions without deleting anything')
@click.pass_context
def sweep_prs(ctx, base_name, repository, hosted_zone_name, cooldown_seconds, dry_run):
    """Delete pull request stacks whose pull request is closed."""
    try:
        config = _load_config(
            base_name,
            repository=repository,
            hosted_zone_name=hosted_zone_name,
            cooldown_seconds=cooldown_seconds,
            dry_run=dry_run or None,
        )
        config.qualified_repository()
    except ConfigError as e:
        _fail(str(e), 2)
    _run('prs', config)


@main.command('sweep-instances')
@click.option('--base-name', help='Base stack name (RECLAIM_BASE_NAME)')
@click.option('--api-name', 'proxygen_api_name', help='Apigee API name, defaults to the base name (RECLAIM_PROXYGEN_API_NAME)')
@click.option('--repository', help='GitHub repository, owner/name (RECLAIM_REPOSITORY)')
@click.option('--private-key-name', 'proxygen_private_key_name',
              help='Export name of the proxygen private key (RECLAIM_PROXYGEN_PRIVATE_KEY_NAME)')
@click.option('--kid', 'proxygen_kid', help='Proxygen key id (RECLAIM_PROXYGEN_KID)')
@click.option('--dry-run', is_flag=True, help='Log decisions without deleting anything')
@click.pass_context
def sweep_instances(ctx, base_name, proxygen_api_name, repository, proxygen_private_key_name, proxygen_kid, dry_run):
    """Delete proxygen pull request instances whose pull request is closed."""
    try:
        config = _load_config(
            base_name,
            proxygen_api_name=proxygen_api_name,
            repository=repository,
            proxygen_private_key_name=proxygen_private_key_name,
            proxygen_kid=proxygen_kid,
            dry_run=dry_run or None,
        )
        config.qualified_repository()
        config.private_key_export()
        config.kid()
    except ConfigError as e:
        _fail(str(e), 2)
    _run('instances', config)

@main.command('active-versions')
@click.option('--environment', help='Environment to query (RECLAIM_ENVIRONMENT)')
@click.option('--api-base-path', help='API base path of the status endpoint (RECLAIM_API_BASE_PATH)')
@click.pass_context
def active_versions(ctx, environment, api_base_path):
    """Show the versions currently live in an environment."""
    try:
        # base name is irrelevant for this lookup
        config = ReclaimConfig.from_env(base_name='-').with_overrides(
            environment=environment,
            api_base_path=api_base_path,
        )
        if not config.api_base_path:
            raise ConfigError("API base path is required (RECLAIM_API_BASE_PATH)")
        profile = config.profile()
    except ConfigError as e:
        _fail(str(e), 2)

    try:
        oracle = ActiveVersionOracle(api_key=config.status_api_key)
        snapshot = oracle.get_active_versions(profile, config.api_base_path)
    except ReclamationError as e:
        _fail(str(e), 1)

    if ctx.obj.get('json', False):
        _json_output({
            'environment': profile.name,
            'base_environment_version': snapshot.base_environment_version,
            'sandbox_environment_version': snapshot.sandbox_environment_version,
        })
    else:
        _human_output(f"Environment: {profile.name} ({profile.domain})")
        _human_output(f"Active version: {snapshot.base_environment_version}")
        if profile.has_sandbox:
            _human_output(f"Sandbox version: {snapshot.sandbox_environment_version or 'unknown'}")


if __name__ == '__main__':
    main()
