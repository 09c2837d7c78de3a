"""
Anti-Spam Risk Aggregator
=========================

Main service class that combines every detector into one decision.

DESIGN:
    evaluate() is synchronous and does all state mutation for one event
    before returning. Messages run five families:

        spam, content, security, links, mentions

    Each triggered family picks an action from its own escalation table
    using the user's current violation count. The final action is the
    most severe one. One violation is then recorded with the highest
    severity, so the count seen by the next event includes this one.

    Joins run account risk and raid correlation. The join action comes
    from the raid detector's per-join analysis; joins never add
    violations.

    After the Decision exists, sinks and the enforcement executor are
    scheduled as safe background tasks. None of them can change the
    decision. Without a running loop they run inline before evaluate()
    returns.

    Lockdown flow:
        raid declared with actions.lockdown
        -> executor.lock_guild() returns a permission snapshot
        -> begin_lockdown(snapshot)
        cleanup() after lockdownDuration
        -> end_lockdown() -> executor.unlock_guild(snapshot)
    Without an executor the lockdown is tracked with an empty snapshot.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from vigil.core.config import Settings, get_settings
from vigil.core.errors import InvalidInput
from vigil.core.guild_config import GuildConfig
from vigil.core.logger import logger
from vigil.utils.async_utils import create_safe_task, fire_and_forget, safe_async_operation
from vigil.utils.clock import Clock

from .constants import CATEGORY_ACCOUNT, CATEGORY_RAID, DISABLED_REASON
from .content import ContentDetector
from .escalation import FAMILY_POLICIES, GENERIC_POLICY, EscalationEngine
from .models import Action, Decision, DetectionResult, Event, RaidAssessment
from .patterns import PatternLibrary
from .policy import LinkPolicy, MentionPolicy
from .raid import RaidDetector
from .security import SecurityThreatDetector
from .sinks import AlertSink, AuditSink, EnforcementExecutor, WebhookAlertSink
from .spam import SpamDetector


class RiskAggregator:
    """
    Multi-signal risk aggregation and escalation.

    Args:
        settings: Process settings (get_settings() if omitted).
        clock: Time source (wall clock if omitted).
        library: Shared pattern library.
        audit_sink: Receives every triggered decision.
        alert_sink: Receives raid alerts. Defaults to a webhook sink when
            settings.alert_webhook_url is set.
        executor: Applies actions and lockdowns.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
        library: Optional[PatternLibrary] = None,
        audit_sink: Optional[AuditSink] = None,
        alert_sink: Optional[AlertSink] = None,
        executor: Optional[EnforcementExecutor] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.clock = clock or Clock()
        self.library = library or PatternLibrary()

        self.spam = SpamDetector(self.clock)
        self.content = ContentDetector(self.clock, self.library, self.settings.content_cache_timedelta)
        self.security = SecurityThreatDetector(self.library)
        self.links = LinkPolicy()
        self.mentions = MentionPolicy()
        self.raid = RaidDetector(self.clock, self.security)
        self.escalation = EscalationEngine(self.clock, self.settings.violation_timedelta)

        if self.settings.alert_webhook_url:
            logger.set_webhook(self.settings.alert_webhook_url)
            if alert_sink is None:
                alert_sink = WebhookAlertSink(self.settings.alert_webhook_url)

        self.audit_sink = audit_sink
        self.alert_sink = alert_sink
        self.executor = executor

        self._cleanup_task: Optional[asyncio.Task] = None
        self._events_processed = 0
        self._actions_taken = 0

        logger.tree("Risk Aggregator Initialized", [
            ("Detectors", "spam, content, security, links, mentions, raid"),
            ("Audit Sink", type(audit_sink).__name__ if audit_sink else "None"),
            ("Alert Sink", type(alert_sink).__name__ if alert_sink else "None"),
            ("Executor", type(executor).__name__ if executor else "None"),
            ("Violation TTL", f"{self.settings.violation_ttl}s"),
        ], emoji="🛡️")

    # =========================================================================
    # Evaluation
    # =========================================================================

    def evaluate(self, event: Event, config: GuildConfig) -> Decision:
        """
        Evaluate one event against a guild configuration.

        Raises:
            InvalidInput: If the event is not a valid Event or belongs to
                a different guild than the configuration.
        """
        if not isinstance(event, Event):
            raise InvalidInput("expected an Event", event)
        event.validate()
        if event.guild_id != config.guild_id:
            raise InvalidInput(
                f"event guild {event.guild_id} does not match config guild {config.guild_id}",
                event.guild_id,
            )

        self._events_processed += 1
        if event.is_message:
            decision = self._evaluate_message(event, config)
        else:
            decision = self._evaluate_join(event, config)

        if decision.action > Action.NONE:
            self._actions_taken += 1
        self._dispatch(decision, config)
        return decision

    def _evaluate_message(self, event: Event, config: GuildConfig) -> Decision:
        results: Dict[str, DetectionResult] = {}
        for detector in (self.spam, self.content, self.security, self.links, self.mentions):
            result = detector.evaluate(event, config)
            results[result.category] = result

        user_id = event.author_id
        now = event.timestamp
        triggered = [r for r in results.values() if r.triggered]

        family_actions: Dict[str, Action] = {}
        for result in triggered:
            policy = FAMILY_POLICIES.get(result.category, GENERIC_POLICY)
            family_actions[result.category] = self.escalation.decide_action(
                user_id, result.severity, policy, now=now,
            )

        action = max(family_actions.values(), default=Action.NONE)
        reasons = tuple(reason for r in triggered for reason in r.reasons)
        severity = max((r.severity for r in triggered), default=0)
        score = max((r.score for r in triggered), default=0)

        if triggered:
            record = self.escalation.record_violation(user_id, "; ".join(reasons), severity, now=now)
            violation_count = record.count
        else:
            violation_count = self.escalation.violation_count(user_id, now)

        return Decision(
            event=event,
            action=action,
            severity=severity,
            score=score,
            reasons=reasons,
            results=results,
            family_actions=family_actions,
            violation_count=violation_count,
        )

    def _evaluate_join(self, event: Event, config: GuildConfig) -> Decision:
        results: Dict[str, DetectionResult] = {}
        risk = self.security.score_account(event, config)
        if config.security is not None and config.security.enabled:
            results[CATEGORY_ACCOUNT] = self.security.account_result(event, config, risk)
        else:
            results[CATEGORY_ACCOUNT] = DetectionResult.disabled(CATEGORY_ACCOUNT)

        assessment = self.raid.evaluate_join(event, config, risk)
        results[CATEGORY_RAID] = _raid_result(assessment)

        action = Action.NONE
        reasons: List[str] = []
        severity: float = 0
        family_actions: Dict[str, Action] = {}
        if assessment.join is not None:
            action = assessment.join.action
            severity = assessment.join.risk_score
            if action > Action.NONE or assessment.join.suspicious:
                reasons.extend(assessment.join.reasons)
            if action > Action.NONE:
                family_actions[CATEGORY_RAID] = action
        if assessment.is_raid:
            reasons.extend(assessment.recommendations)

        return Decision(
            event=event,
            action=action,
            severity=severity,
            score=assessment.confidence,
            reasons=tuple(reasons),
            results=results,
            family_actions=family_actions,
            violation_count=self.escalation.violation_count(event.author_id, event.timestamp),
            raid=assessment,
        )

    # =========================================================================
    # Dispatch
    # =========================================================================

    def _dispatch(self, decision: Decision, config: GuildConfig) -> None:
        """Hand a finished decision to sinks and the executor."""
        if self.audit_sink is not None and decision.triggered:
            fire_and_forget(self.audit_sink.record(decision), "Audit Sink")

        raid = decision.raid
        if raid is not None and raid.alert and self.alert_sink is not None:
            fire_and_forget(self.alert_sink.raid_alert(raid), "Raid Alert")

        if raid is not None and raid.lockdown_requested:
            self._request_lockdown(raid, config, decision.event.timestamp)

        if self.executor is not None and decision.action > Action.NONE:
            fire_and_forget(self._execute(decision), "Enforcement")

    async def _execute(self, decision: Decision) -> None:
        try:
            success = await self.executor.execute(decision)
        except Exception as e:
            self.report_outcome(decision, False, e)
            return
        self.report_outcome(decision, bool(success))

    def _request_lockdown(self, raid: RaidAssessment, config: GuildConfig, now: datetime) -> None:
        duration = config.raid_protection.lockdown_duration if config.raid_protection else None
        if self.executor is None:
            self.raid.begin_lockdown(raid.guild_id, {}, now=now, duration=duration)
            return
        fire_and_forget(self._lock_guild(raid.guild_id, now, duration), "Guild Lockdown")

    async def _lock_guild(self, guild_id: int, now: datetime, duration: Optional[timedelta]) -> None:
        snapshot = await safe_async_operation(
            "Guild Lockdown", self.executor.lock_guild(guild_id), default={},
        )
        self.raid.begin_lockdown(guild_id, snapshot or {}, now=now, duration=duration)

    def report_outcome(
        self,
        decision: Decision,
        success: bool,
        error: Optional[BaseException] = None,
    ) -> None:
        """Log the executor's result. The decision itself is never changed."""
        details = [
            ("Guild", str(decision.event.guild_id)),
            ("User", str(decision.event.author_id)),
            ("Action", decision.action.label),
        ]
        if success:
            logger.success("Enforcement Applied", details)
            return
        if error is not None:
            details.append(("Error Type", type(error).__name__))
            details.append(("Error", str(error)[:100]))
        logger.warning("Enforcement Failed", details)

    # =========================================================================
    # Lockdown
    # =========================================================================

    def release_lockdown(self, guild_id: int) -> bool:
        """
        End a guild's lockdown now and restore its permissions.

        Returns:
            True if a lockdown was active.
        """
        snapshot = self.raid.end_lockdown(guild_id)
        if snapshot is None:
            return False
        if self.executor is not None:
            fire_and_forget(self.executor.unlock_guild(guild_id, snapshot), "Guild Unlock")
        return True

    # =========================================================================
    # Maintenance
    # =========================================================================

    def cleanup(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Run one maintenance pass over every detector.

        Returns:
            Summary of what was removed or released.
        """
        now = now or self.clock.now()

        released = 0
        for lockdown in self.raid.due_lockdowns(now):
            if self.release_lockdown(lockdown.guild_id):
                released += 1

        summary = {
            "spam_users": self.spam.cleanup(now),
            "content_cache": self.content.cleanup(),
            "raid_guilds": self.raid.cleanup(now),
            "violations": self.escalation.sweep(now),
            "lockdowns_released": released,
        }

        logger.debug("Anti-Spam Cleanup", [(k.replace("_", " ").title(), str(v)) for k, v in summary.items()])
        return summary

    def start_cleanup_task(self) -> asyncio.Task:
        """Start the periodic cleanup loop (needs a running event loop)."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = create_safe_task(self._cleanup_loop(), "Anti-Spam Cleanup")
        return self._cleanup_task

    async def stop_cleanup_task(self) -> None:
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

    async def close(self) -> None:
        """Stop the cleanup loop and close the webhook session, if any."""
        await self.stop_cleanup_task()
        if isinstance(self.alert_sink, WebhookAlertSink):
            await self.alert_sink.close()

    async def _cleanup_loop(self) -> None:
        """Run cleanup every settings.cleanup_interval seconds."""
        while True:
            await asyncio.sleep(self.settings.cleanup_interval)
            self.cleanup()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "events_processed": self._events_processed,
            "actions_taken": self._actions_taken,
            "spam": self.spam.get_stats(),
            "content": self.content.get_stats(),
            "security": self.security.get_stats(),
            "raid": self.raid.get_stats(),
            "escalation": self.escalation.get_stats(),
        }


def _raid_result(assessment: RaidAssessment) -> DetectionResult:
    """Raid assessment folded into the per-category result map."""
    if assessment.reasons == (DISABLED_REASON,):
        return DetectionResult.disabled(CATEGORY_RAID)
    return DetectionResult(
        category=CATEGORY_RAID,
        triggered=assessment.is_raid,
        score=assessment.confidence,
        severity=assessment.join.risk_score if assessment.join else 0,
        reasons=assessment.reasons if assessment.is_raid else (),
        signals={
            "join_count": assessment.join_count,
            "suspicious_count": assessment.suspicious_count,
            "average_risk": round(assessment.average_risk, 1),
            "new_account_count": assessment.new_account_count,
            "recommendations": assessment.recommendations,
        },
    )


__all__ = ["RiskAggregator"]
