"""
Anti-Spam Raid Detection
========================

Join correlation, raid declaration, and lockdown bookkeeping.

DESIGN:
    One join ActivityWindow keyed by guild (10 minute retention, queried
    over the guild's configured time window) plus a GuildRaidState per
    guild for the raid flag, alert cooldown, lockdown, and history.

    Per join:
    1. Account risk from the security detector
    2. Username analysis, similar usernames, account-age gate
    3. Join recorded, then raid conditions evaluated over the window

    Raid confidence only accumulates once the window holds joinThreshold
    joins: +30 base, +40 when 60% of joins are risky, +30 when the mean
    risk exceeds 40, +35 when 70% are accounts under 24h. 60 declares.

    Declaring is idempotent while a raid is active: side effects
    (lockdown request, kick list, history entry) fire once. The log alert
    is rate-limited to one per 5 minutes. The active flag clears an hour
    after the raid started.

    Lockdown:
        Inactive --(begin_lockdown)--> Active --(end_lockdown)--> Inactive
    begin_lockdown keeps a copy of the pre-lockdown permission snapshot;
    end_lockdown hands it back for an exact restore.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Tuple

from vigil.core.errors import StateCorruption
from vigil.core.guild_config import DEFAULT_LOCKDOWN_DURATION_MS, GuildConfig, RaidProtectionConfig
from vigil.core.logger import logger
from vigil.utils.clock import Clock

from .constants import (
    ACCOUNT_AGE_GATE_POINTS,
    BOT_USERNAME_POINTS,
    DEFAULT_MINIMUM_ACCOUNT_AGE,
    NUMERIC_USERNAME_POINTS,
    RAID_ACTIVE_RESET,
    RAID_ALERT_COOLDOWN,
    RAID_AVERAGE_RISK_CONFIDENCE,
    RAID_AVERAGE_RISK_LIMIT,
    RAID_BASE_CONFIDENCE,
    RAID_DECLARE_CONFIDENCE,
    RAID_EVENT_RETENTION,
    RAID_KICK_LOOKBACK,
    RAID_NEW_ACCOUNT_AGE,
    RAID_NEW_ACCOUNT_CONFIDENCE,
    RAID_NEW_ACCOUNT_RATIO,
    RAID_SUSPICIOUS_CONFIDENCE,
    RAID_SUSPICIOUS_RATIO,
    RAID_SUSPICIOUS_RISK,
    RAID_WINDOW_RETENTION,
    RANDOM_USERNAME_POINTS,
    RAPID_JOIN_COUNT,
    RAPID_JOIN_POINTS,
    RAPID_JOIN_WINDOW,
    RECOMMEND_ACCOUNT_AGE,
    RECOMMEND_LOCKDOWN,
    RECOMMEND_RESTRICT,
    RECOMMEND_VERIFICATION,
    SIMILAR_USERNAME_POINTS,
    SIMILAR_USERNAME_THRESHOLD,
    USERNAME_LENGTH_POINTS,
)
from .detectors import find_similar, username_signals
from .escalation import JOIN_POLICY
from .models import (
    AccountRisk,
    Action,
    Event,
    GuildRaidState,
    JoinAnalysis,
    JoinSample,
    LockdownState,
    RaidAssessment,
    RaidEvent,
)
from .security import SecurityThreatDetector
from .window import ActivityWindow, WindowEntry


USERNAME_POINTS: Dict[str, Tuple[int, str]] = {
    "random": (RANDOM_USERNAME_POINTS, "Random username pattern"),
    "numeric": (NUMERIC_USERNAME_POINTS, "Excessive numbers in username"),
    "short": (USERNAME_LENGTH_POINTS, "Very short username"),
    "long": (USERNAME_LENGTH_POINTS, "Very long username"),
    "bot_pattern": (BOT_USERNAME_POINTS, "Bot-like username pattern"),
}


class RaidDetector:
    """
    Guild-scoped join correlation.

    Args:
        clock: Time source for cleanup and lockdown timing.
        security: Account risk scorer shared with the aggregator.
    """

    category = "raid"

    def __init__(self, clock: Clock, security: Optional[SecurityThreatDetector] = None) -> None:
        self._clock = clock
        self._security = security or SecurityThreatDetector()
        self._joins: ActivityWindow[JoinSample] = ActivityWindow(RAID_WINDOW_RETENTION, clock, name="raid")
        self._states: Dict[int, GuildRaidState] = {}

    def _state(self, guild_id: int) -> GuildRaidState:
        state = self._states.get(guild_id)
        if state is None:
            state = GuildRaidState()
            self._states[guild_id] = state
        return state

    # =========================================================================
    # Join Evaluation
    # =========================================================================

    def evaluate_join(
        self,
        event: Event,
        config: GuildConfig,
        account: Optional[AccountRisk] = None,
    ) -> RaidAssessment:
        """
        Analyze one join and re-evaluate the guild's raid conditions.

        Args:
            event: A JOIN event.
            config: The guild configuration.
            account: Precomputed account risk (computed here if omitted).

        Returns:
            RaidAssessment for the guild after this join.
        """
        raid = config.raid_protection
        if raid is None or not raid.enabled:
            return RaidAssessment.disabled(event.guild_id)

        guild_id = event.guild_id
        now = event.timestamp
        state = self._state(guild_id)
        self._expire_raid(guild_id, state, now)

        if account is None:
            account = self._security.score_account(event, config)

        previous = self._joins.recent(guild_id, max_age=raid.time_window, now=now)
        join = self.analyze_join(event, raid, account, previous)

        sample = JoinSample(
            user_id=event.author_id,
            username=event.author_name or "",
            joined_at=now,
            account_age=account.account_age,
            risk_score=join.risk_score,
            suspicious=join.suspicious,
        )
        try:
            self._joins.record(guild_id, now, sample)
        except StateCorruption as e:
            logger.warning("Out-Of-Order Join Dropped", [
                ("Guild", str(guild_id)),
                ("User", str(event.author_id)),
                ("Timestamp", e.timestamp.isoformat()),
                ("Last", e.last_timestamp.isoformat()),
            ])

        samples = [e.payload for e in self._joins.recent(guild_id, max_age=raid.time_window, now=now)]
        return self._assess(event, raid, state, samples, join)

    def analyze_join(
        self,
        event: Event,
        raid: RaidProtectionConfig,
        account: AccountRisk,
        previous: List[WindowEntry[JoinSample]],
    ) -> JoinAnalysis:
        """
        Per-join risk, suspicion flag, and recommended action.

        Risk is account risk plus username points (suspicious usernames
        only), 15 per similar recent username, 30 for an account younger
        than the minimum age, and 25 for a rapid join.
        """
        username = event.author_name or ""
        risk = account.score
        reasons: List[str] = list(account.flags)
        suspicious = False

        signals, bot_like = username_signals(username)
        if bot_like:
            for signal in signals:
                points, reason = USERNAME_POINTS[signal]
                risk += points
                reasons.append(reason)
            suspicious = True

        others = [e.payload.username for e in previous if e.payload.user_id != event.author_id]
        similar = find_similar(username, others, SIMILAR_USERNAME_THRESHOLD)
        if similar:
            risk += SIMILAR_USERNAME_POINTS * len(similar)
            reasons.append(f"Similar to {len(similar)} recent joins")
            suspicious = True

        gate_action: Optional[Action] = None
        gate = raid.account_age
        minimum_age = gate.minimum_age if gate is not None else DEFAULT_MINIMUM_ACCOUNT_AGE
        age = account.account_age
        gate_fired = False
        if age is not None and age < minimum_age:
            risk += ACCOUNT_AGE_GATE_POINTS
            reasons.append(f"New account ({_format_age(age)} old)")
            if gate is not None and gate.enabled:
                gate_fired = True
                suspicious = True
                gate_action = Action.from_label(gate.action)

        rapid = sum(1 for e in previous if event.timestamp - e.timestamp <= RAPID_JOIN_WINDOW) + 1
        if rapid >= RAPID_JOIN_COUNT:
            risk += RAPID_JOIN_POINTS
            reasons.append("Part of rapid join pattern")
            suspicious = True

        action = JOIN_POLICY.select(risk, 0)
        if gate_action is not None and gate_action > action:
            action = gate_action

        return JoinAnalysis(
            user_id=event.author_id,
            risk_score=risk,
            suspicious=suspicious,
            action=action,
            reasons=tuple(reasons),
            account=account,
            similar_usernames=tuple(name for name, _ in similar),
            account_age_gate=gate_fired,
        )

    def _assess(
        self,
        event: Event,
        raid: RaidProtectionConfig,
        state: GuildRaidState,
        samples: List[JoinSample],
        join: JoinAnalysis,
    ) -> RaidAssessment:
        guild_id = event.guild_id
        now = event.timestamp
        count = len(samples)
        risky = sum(1 for s in samples if s.risk_score > RAID_SUSPICIOUS_RISK)
        average = sum(s.risk_score for s in samples) / count if count else 0.0
        new_accounts = sum(
            1 for s in samples
            if s.account_age is not None and s.account_age < RAID_NEW_ACCOUNT_AGE
        )

        confidence = 0
        recommendations: List[str] = []
        indicators: List[str] = []
        if count >= raid.join_threshold:
            confidence += RAID_BASE_CONFIDENCE
            indicators.append(f"{count} joins in {int(raid.time_window.total_seconds())}s")

            if risky >= count * RAID_SUSPICIOUS_RATIO:
                confidence += RAID_SUSPICIOUS_CONFIDENCE
                recommendations.append(RECOMMEND_VERIFICATION)
                indicators.append(f"{risky} risky accounts")

            if average > RAID_AVERAGE_RISK_LIMIT:
                confidence += RAID_AVERAGE_RISK_CONFIDENCE
                recommendations.append(RECOMMEND_RESTRICT)
                indicators.append(f"average risk {average:.0f}")

            if new_accounts >= count * RAID_NEW_ACCOUNT_RATIO:
                confidence += RAID_NEW_ACCOUNT_CONFIDENCE
                recommendations.append(RECOMMEND_ACCOUNT_AGE)
                indicators.append(f"{new_accounts} accounts under 24h")

        is_raid = confidence >= RAID_DECLARE_CONFIDENCE
        if is_raid:
            recommendations.append(RECOMMEND_LOCKDOWN)

        new_raid = is_raid and not state.raid_active
        alert = False
        if is_raid and (state.last_alert_at is None or now - state.last_alert_at > RAID_ALERT_COOLDOWN):
            state.last_alert_at = now
            alert = True
            logger.tree("RAID DETECTED", [
                ("Guild", str(guild_id)),
                ("Joins", str(count)),
                ("Risky", str(risky)),
                ("Average Risk", f"{average:.1f}"),
                ("Confidence", str(confidence)),
                ("Indicators", ", ".join(indicators)),
            ], emoji="🚨")

        lockdown_requested = False
        kick_candidates: Tuple[int, ...] = ()
        if new_raid:
            state.raid_active = True
            state.raid_started_at = now
            state.events.append(RaidEvent(
                guild_id=guild_id,
                started_at=now,
                join_count=count,
                confidence=confidence,
                indicators=tuple(indicators),
            ))
            lockdown_requested = raid.actions.lockdown and state.lockdown is None
            if raid.actions.kick_new_members:
                kick_candidates = tuple(
                    s.user_id for s in samples
                    if s.suspicious and now - s.joined_at <= RAID_KICK_LOOKBACK
                )

        return RaidAssessment(
            guild_id=guild_id,
            is_raid=is_raid,
            confidence=confidence,
            join_count=count,
            suspicious_count=risky,
            average_risk=average,
            new_account_count=new_accounts,
            recommendations=tuple(recommendations),
            join=join,
            new_raid=new_raid,
            alert=alert,
            lockdown_requested=lockdown_requested,
            kick_candidates=kick_candidates,
            notify_moderators=new_raid and raid.actions.notify_moderators,
            require_verification=new_raid and raid.actions.require_verification,
            reasons=tuple(indicators),
        )

    def _expire_raid(self, guild_id: int, state: GuildRaidState, now: datetime) -> bool:
        if state.raid_active and state.raid_started_at is not None and now - state.raid_started_at > RAID_ACTIVE_RESET:
            state.raid_active = False
            state.raid_started_at = None
            logger.info("Raid State Cleared", [("Guild", str(guild_id))])
            return True
        return False

    def is_raid_active(self, guild_id: int) -> bool:
        state = self._states.get(guild_id)
        return bool(state and state.raid_active)

    def raid_history(self, guild_id: int) -> List[RaidEvent]:
        state = self._states.get(guild_id)
        return list(state.events) if state else []

    # =========================================================================
    # Lockdown
    # =========================================================================

    def begin_lockdown(
        self,
        guild_id: int,
        snapshot: Mapping[str, Any],
        now: Optional[datetime] = None,
        duration: Optional[timedelta] = None,
    ) -> LockdownState:
        """
        Mark a guild as locked down and keep its permission snapshot.

        Idempotent: an active lockdown is returned unchanged.
        """
        state = self._state(guild_id)
        if state.lockdown is not None:
            return state.lockdown

        lockdown = LockdownState(
            guild_id=guild_id,
            started_at=now or self._clock.now(),
            duration=duration or timedelta(milliseconds=DEFAULT_LOCKDOWN_DURATION_MS),
            snapshot=dict(snapshot),
        )
        state.lockdown = lockdown
        logger.tree("LOCKDOWN STARTED", [
            ("Guild", str(guild_id)),
            ("Duration", f"{int(lockdown.duration.total_seconds())}s"),
            ("Snapshot Entries", str(len(lockdown.snapshot))),
        ], emoji="🔒")
        return lockdown

    def end_lockdown(self, guild_id: int) -> Optional[Mapping[str, Any]]:
        """End a lockdown and return the snapshot to restore (None if none)."""
        state = self._states.get(guild_id)
        if state is None or state.lockdown is None:
            return None
        lockdown = state.lockdown
        state.lockdown = None
        logger.tree("LOCKDOWN ENDED", [
            ("Guild", str(guild_id)),
            ("Snapshot Entries", str(len(lockdown.snapshot))),
        ], emoji="🔓")
        return lockdown.snapshot

    def lockdown_for(self, guild_id: int) -> Optional[LockdownState]:
        state = self._states.get(guild_id)
        return state.lockdown if state else None

    def due_lockdowns(self, now: Optional[datetime] = None) -> List[LockdownState]:
        """Active lockdowns whose duration has elapsed."""
        now = now or self._clock.now()
        return [
            state.lockdown for state in self._states.values()
            if state.lockdown is not None and now >= state.lockdown.ends_at
        ]

    # =========================================================================
    # Maintenance
    # =========================================================================

    def cleanup(self, now: Optional[datetime] = None) -> int:
        """
        Sweep join windows, clear stale raid flags, and trim raid history.

        Guild state is dropped once it has no joins, no active raid or
        lockdown, and no history left.
        """
        now = now or self._clock.now()
        removed = self._joins.sweep(now=now)

        for guild_id in list(self._states.keys()):
            state = self._states[guild_id]
            self._expire_raid(guild_id, state, now)
            state.events = [e for e in state.events if now - e.started_at <= RAID_EVENT_RETENTION]
            idle = (
                not state.raid_active
                and state.lockdown is None
                and not state.events
                and guild_id not in self._joins
            )
            if idle:
                del self._states[guild_id]

        return removed

    def get_stats(self) -> Dict[str, Any]:
        return {
            "tracked_guilds": len(self._joins),
            "total_joins": self._joins.total_entries(),
            "active_raids": sum(1 for s in self._states.values() if s.raid_active),
            "active_lockdowns": sum(1 for s in self._states.values() if s.lockdown is not None),
            "raid_events": sum(len(s.events) for s in self._states.values()),
        }


def _format_age(age: timedelta) -> str:
    seconds = int(age.total_seconds())
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


__all__ = ["RaidDetector"]
