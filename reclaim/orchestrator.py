"""
Reclamation sweeps: decide which stacks are stale, delete them one at a time
and clean up their CNAME records.

Three sweeps share the same machinery:

    sweep_superseded_versions            versioned stacks no longer serving live traffic
    sweep_closed_pull_requests           pull request stacks whose PR has been closed
    sweep_closed_pull_request_instances  proxygen instances whose PR has been closed

Every run re-reads stacks, active versions and PR state; nothing is carried
over between runs. At most one sweep per base name should run at a time.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from .cleanup.dns import AliasDirectory, AliasIndex
from .cleanup.models import (
    ActiveVersionSnapshot,
    Decision,
    IdentityKind,
    PullRequestState,
    Reason,
    ReclamationReport,
)
from .cleanup.proxygen import PULL_REQUEST_ENVIRONMENTS, LambdaInvocationError, ProxygenInstanceStore
from .cleanup.stacks import DeploymentEnumerator
from .config import ConfigError, ReclaimConfig
from .names import parse
from .obs.reviews import ReviewStateChecker
from .obs.versions import ActiveVersionOracle
from .retention import active_version_settled, decide

logger = logging.getLogger(__name__)

VERSIONS_SWEEP = "superseded_versions"
PULL_REQUESTS_SWEEP = "closed_pull_requests"
INSTANCES_SWEEP = "closed_pull_request_instances"

PR_STATE_REASONS = {
    PullRequestState.CLOSED: (Decision.DELETE, Reason.PR_CLOSED),
    PullRequestState.OPEN: (Decision.KEEP, Reason.PR_OPEN),
    PullRequestState.UNKNOWN: (Decision.KEEP, Reason.PR_UNKNOWN),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReclamationOrchestrator:
    """Runs reclamation sweeps for one base stack name."""

    def __init__(
        self,
        config: ReclaimConfig,
        enumerator: Optional[DeploymentEnumerator] = None,
        aliases: Optional[AliasDirectory] = None,
        oracle: Optional[ActiveVersionOracle] = None,
        reviews: Optional[ReviewStateChecker] = None,
        instances: Optional[ProxygenInstanceStore] = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Optional[Callable[[float], None]] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        config.validate()
        self.config = config
        self._enumerator = enumerator
        self._aliases = aliases
        self._oracle = oracle
        self._reviews = reviews
        self._instances = instances
        self.clock = clock
        self.cancel_event = cancel_event or threading.Event()
        # cooldowns end early on cancellation
        self.sleep = sleep or self.cancel_event.wait

    # Collaborators are created on first use so each sweep only needs its own configuration

    @property
    def enumerator(self) -> DeploymentEnumerator:
        if self._enumerator is None:
            self._enumerator = DeploymentEnumerator(region=self.config.region)
        return self._enumerator

    @property
    def aliases(self) -> AliasDirectory:
        if self._aliases is None:
            self._aliases = AliasDirectory()
        return self._aliases

    @property
    def oracle(self) -> ActiveVersionOracle:
        if self._oracle is None:
            self._oracle = ActiveVersionOracle(api_key=self.config.status_api_key)
        return self._oracle

    @property
    def reviews(self) -> ReviewStateChecker:
        if self._reviews is None:
            self._reviews = ReviewStateChecker(
                self.config.qualified_repository(),
                token=self.config.github_token,
            )
        return self._reviews

    @property
    def instances(self) -> ProxygenInstanceStore:
        if self._instances is None:
            kid = self.config.kid()
            private_key_arn = self.enumerator.get_export(self.config.private_key_export())
            self._instances = ProxygenInstanceStore(
                self.config.api_name(),
                private_key_arn,
                kid,
                region=self.config.region,
            )
        return self._instances

    @property
    def embargo(self) -> timedelta:
        return timedelta(hours=self.config.embargo_hours)

    def cancel(self) -> None:
        """Stop before the next deletion. A deletion in progress is completed."""
        self.cancel_event.set()

    def fetch_active_versions(self) -> ActiveVersionSnapshot:
        if not self.config.api_base_path:
            raise ConfigError("API base path is required (RECLAIM_API_BASE_PATH)")
        return self.oracle.get_active_versions(self.config.profile(), self.config.api_base_path)

    def sweep_superseded_versions(
        self,
        active_versions: Optional[ActiveVersionSnapshot] = None,
    ) -> ReclamationReport:
        """
        Delete versioned stacks superseded by the active version.

        Args:
            active_versions: Snapshot to use instead of querying the status endpoints

        Returns:
            ReclamationReport: Decisions and deletion results

        Raises:
            EnumerationError: If stacks or DNS records could not be listed
            ActiveVersionError: If the base environment version is unavailable
        """
        base_name = self.config.base_name
        report = ReclamationReport(sweep=VERSIONS_SWEEP, dry_run=self.config.dry_run)

        if active_versions is None:
            active_versions = self.fetch_active_versions()
        now = self.clock()

        logger.info("checking cloudformation stacks")
        units = self.enumerator.list_all()

        settled = active_version_settled(units, base_name, active_versions, now, self.embargo)
        if not settled:
            report.skipped_settling = True

        for unit in units:
            identity = parse(unit.name, base_name)
            if identity.kind is not IdentityKind.VERSIONED:
                logger.debug(f"Ignoring stack {unit.name} ({identity.kind.value})")
                continue

            decision, reason = decide(identity, unit.created_at, now, active_versions, self.embargo)
            if decision is Decision.DELETE and not settled:
                decision, reason = Decision.KEEP, Reason.SETTLING
            self._log_decision(report, unit.name, decision, reason)

        self._execute(report)
        return report

    def sweep_closed_pull_requests(self) -> ReclamationReport:
        """
        Delete pull request stacks whose pull request has been closed.

        Returns:
            ReclamationReport: Decisions and deletion results

        Raises:
            EnumerationError: If stacks or DNS records could not be listed
        """
        base_name = self.config.base_name
        report = ReclamationReport(sweep=PULL_REQUESTS_SWEEP, dry_run=self.config.dry_run)

        logger.info("checking cloudformation stacks")
        units = self.enumerator.list_all()

        # main and sandbox stacks of one PR share a lookup
        states: Dict[str, PullRequestState] = {}
        for unit in units:
            identity = parse(unit.name, base_name)
            if identity.kind is not IdentityKind.PULL_REQUEST:
                logger.debug(f"Ignoring stack {unit.name} ({identity.kind.value})")
                continue

            decision, reason = self._review_decision(states, identity.pull_request_id)
            self._log_decision(report, unit.name, decision, reason)

        self._execute(report)
        return report

    def sweep_closed_pull_request_instances(self) -> ReclamationReport:
        """
        Delete proxygen pull request instances whose pull request has been closed.

        Instances named ``{api}-pr-{id}`` are checked on every pull request
        environment. Decisions are recorded as ``{environment}/{instance}``.

        Returns:
            ReclamationReport: Decisions and deletion results

        Raises:
            EnumerationError: If instances on any environment could not be listed
            ConfigError: If the proxygen key settings are missing
        """
        api_name = self.config.api_name()
        report = ReclamationReport(sweep=INSTANCES_SWEEP, dry_run=self.config.dry_run)

        # every environment is listed before anything is deleted
        listed = [(env, self.instances.list_instances(env)) for env in PULL_REQUEST_ENVIRONMENTS]

        states: Dict[str, PullRequestState] = {}
        targets: List[Tuple[str, str]] = []
        for environment, names in listed:
            for instance in names:
                identity = parse(instance, api_name)
                if identity.kind is not IdentityKind.PULL_REQUEST or identity.is_sandbox_variant:
                    logger.debug(f"Ignoring instance {instance} on {environment}")
                    continue

                decision, reason = self._review_decision(states, identity.pull_request_id)
                self._log_decision(report, f"{environment}/{instance}", decision, reason, kind="instance")
                if decision is Decision.DELETE:
                    targets.append((environment, instance))

        self._execute_instances(report, targets)
        return report

    def _review_decision(self, states: Dict[str, PullRequestState], pull_request_id: str) -> Tuple[Decision, Reason]:
        if pull_request_id not in states:
            states[pull_request_id] = self.reviews.get_state(pull_request_id)
        return PR_STATE_REASONS[states[pull_request_id]]

    def _log_decision(
        self,
        report: ReclamationReport,
        name: str,
        decision: Decision,
        reason: Reason,
        kind: str = "stack",
    ) -> None:
        report.record(name, decision, reason)
        if decision is Decision.DELETE:
            logger.info(f"** going to delete {kind} {name} ({reason.value}) **")
        else:
            logger.info(f"not going to delete {kind} {name} ({reason.value})")

    def _execute_instances(self, report: ReclamationReport, targets: List[Tuple[str, str]]) -> None:
        """Delete proxygen instances one at a time."""
        if report.dry_run:
            for environment, instance in targets:
                logger.info(f"+ (plan) delete instance {instance} on {environment}")
            self._log_summary(report)
            return

        for position, (environment, instance) in enumerate(targets):
            if self.cancel_event.is_set():
                report.cancelled = True
                logger.warning(f"Sweep cancelled, {len(targets) - position} instances not reached")
                break
            name = f"{environment}/{instance}"
            try:
                self.instances.delete(environment, instance)
            except (ClientError, BotoCoreError, LambdaInvocationError) as e:
                logger.error(f"Failed to delete instance {name}: {e}")
                report.failed.append(name)
                continue
            report.deleted.append(name)

        self._log_summary(report)

    def _execute(self, report: ReclamationReport) -> None:
        """Delete every stack decided DELETE, one at a time with a cooldown."""
        names = report.to_delete()
        if not names:
            self._log_summary(report)
            return

        if report.dry_run:
            for name in names:
                logger.info(f"+ (plan) delete stack {name} and its CNAME records")
            self._log_summary(report)
            return

        # listed before any deletion; a listing failure must leave every stack in place
        index = self.aliases.build_index(self.config.hosted_zone_name)

        for position, name in enumerate(names):
            if self.cancel_event.is_set():
                report.cancelled = True
                logger.warning(f"Sweep cancelled, {len(names) - position} stacks not reached")
                break
            self._delete_one(report, index, name)

        self._log_summary(report)

    def _delete_one(self, report: ReclamationReport, index: AliasIndex, name: str) -> None:
        try:
            self.enumerator.delete(name)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete stack {name}: {e}")
            report.failed.append(name)
            return
        report.deleted.append(name)

        cooldown = self.config.cooldown_seconds
        if cooldown > 0:
            logger.info(f"** Sleeping for {cooldown:g} seconds to avoid 429 on delete stack **")
            self.sleep(cooldown)

        try:
            deleted = self.aliases.delete_matching(index, name)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete CNAME records for {name}: {e}")
            report.alias_failed.append(name)
            return
        report.alias_records_deleted += deleted

        if deleted:
            return
        if index.zone_id:
            report.alias_skipped[name] = Reason.RECORD_NOT_FOUND
        elif index.zone_name:
            report.alias_skipped[name] = Reason.ZONE_NOT_FOUND
        else:
            return
        logger.info(f"no CNAME records deleted for {name} ({report.alias_skipped[name].value})")

    def _log_summary(self, report: ReclamationReport) -> None:
        kept = len(report.decisions) - len(report.to_delete())
        logger.info(
            f"Sweep {report.sweep} finished: {len(report.decisions)} evaluated, "
            f"{kept} kept, {len(report.deleted)} deleted, {len(report.failed)} failed, "
            f"{report.alias_records_deleted} CNAME records deleted"
            + (" (dry run)" if report.dry_run else "")
            + (" (cancelled)" if report.cancelled else "")
        )


def sweep_superseded_versions(config: ReclaimConfig, **kwargs) -> ReclamationReport:
    """Run the superseded-version sweep with default AWS and HTTP clients."""
    active_versions = kwargs.pop("active_versions", None)
    return ReclamationOrchestrator(config, **kwargs).sweep_superseded_versions(active_versions)


def sweep_closed_pull_requests(config: ReclaimConfig, **kwargs) -> ReclamationReport:
    """Run the closed pull request sweep with default AWS and HTTP clients."""
    return ReclamationOrchestrator(config, **kwargs).sweep_closed_pull_requests()


def sweep_closed_pull_request_instances(config: ReclaimConfig, **kwargs) -> ReclamationReport:
    """Run the proxygen instance sweep with default AWS and HTTP clients."""
    return ReclamationOrchestrator(config, **kwargs).sweep_closed_pull_request_instances()
