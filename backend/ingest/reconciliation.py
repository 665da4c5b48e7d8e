"""
Reconciliation engine.

Keeps the match store's view of today's and live matches in line with the
upstream provider, applies the deny-list on every write path, and force-closes
matches the provider left in a live state long after they must have ended.

Expected failures (provider errors, single-row write errors, missing store)
come back as result models. Nothing here raises past the engine boundary.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Iterable, Optional
from zoneinfo import ZoneInfo

from shared.config import Settings, get_settings
from shared.models.domain import (
    Match,
    MatchFilters,
    PurgeResult,
    SaveResult,
    StuckFixResult,
    StuckRowOutcome,
    SyncResult,
)
from shared.models.enums import MatchStatus, Sport
from shared.stores.blacklist import BlacklistStore
from shared.stores.matches import MatchStore
from shared.utils.logging import get_logger
from shared.utils.metrics import (
    LIVE_MATCHES,
    MATCHES_BLACKLISTED,
    MATCHES_SAVED,
    STUCK_MATCHES_FIXED,
)

from ingest.normalization.transformer import status_codes, transform_matches
from ingest.providers.base import BaseProvider

logger = get_logger(__name__)

STORE_NOT_CONFIGURED = "store not configured"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReconciliationEngine:
    """Owns every write to the match store."""

    def __init__(
        self,
        providers: dict[Sport, BaseProvider],
        match_store: Optional[MatchStore],
        blacklist_store: Optional[BlacklistStore] = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._providers = providers
        self._store = match_store
        self._blacklist_store = blacklist_store
        self._settings = settings or get_settings()
        self._now = clock
        self._tz = ZoneInfo(self._settings.sync_timezone)
        self._blacklist: frozenset[int] = frozenset(self._settings.match_blacklist)

    @property
    def store_configured(self) -> bool:
        return self._store is not None

    @property
    def blacklist(self) -> frozenset[int]:
        return self._blacklist

    def provider_for(self, sport: Sport) -> Optional[BaseProvider]:
        return self._providers.get(sport)

    # ── Calendar ────────────────────────────────────────────────────────
    def today(self) -> date:
        """Current calendar date in the configured sync timezone."""
        return self._now().astimezone(self._tz).date()

    def day_bounds(self, day: date) -> tuple[datetime, datetime]:
        """[start, end) of ``day`` in the sync timezone, as UTC instants."""
        start = datetime.combine(day, time.min, tzinfo=self._tz)
        end = start + timedelta(days=1)
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)

    # ── Deny-list ───────────────────────────────────────────────────────
    async def reload_blacklist(self) -> frozenset[int]:
        """
        Rebuild the deny-list from configuration plus the deny-list table.

        A table read failure keeps the previously loaded ids.
        """
        ids = set(self._settings.match_blacklist)
        if self._blacklist_store is not None:
            try:
                ids |= await self._blacklist_store.list_ids()
            except Exception as exc:
                logger.error("blacklist_reload_failed", error=str(exc), exc_info=True)
                ids |= self._blacklist
        self._blacklist = frozenset(ids)
        logger.debug("blacklist_loaded", size=len(self._blacklist))
        return self._blacklist

    def filter_blacklisted(self, matches: Iterable[Match]) -> tuple[list[Match], int]:
        """Drop deny-listed ids. Returns (kept, dropped_count)."""
        kept: list[Match] = []
        dropped = 0
        for match in matches:
            if match.id in self._blacklist:
                dropped += 1
                continue
            kept.append(match)
        return kept, dropped

    # ── Persistence path ────────────────────────────────────────────────
    async def save_matches(self, sport: Sport, matches: list[Match], path: str = "sync") -> SaveResult:
        """
        The single write path into the match store.

        Order: deny-list filter, in-batch dedupe by id (last occurrence
        wins), skip rows whose stored status is already terminal, upsert.
        An empty batch after filtering is a successful no-op.
        """
        if self._store is None:
            return SaveResult(success=False, error=STORE_NOT_CONFIGURED)

        kept, dropped = self.filter_blacklisted(matches)
        if dropped:
            MATCHES_BLACKLISTED.labels(sport=sport.value).inc(dropped)
            logger.info("matches_blacklisted", sport=sport.value, dropped=dropped)

        by_id: dict[int, Match] = {}
        for match in kept:
            by_id[match.id] = match.model_copy(update={"sport": sport})
        if not by_id:
            return SaveResult(success=True, count=0, blacklisted=dropped)

        try:
            stored = await self._store.get_many(sport, by_id.keys())
            frozen = [mid for mid, row in stored.items() if row.status.is_terminal]
            for mid in frozen:
                by_id.pop(mid, None)
            count = await self._store.upsert_many(list(by_id.values())) if by_id else 0
        except Exception as exc:
            logger.error(
                "matches_save_failed",
                sport=sport.value,
                rows=len(by_id),
                error=str(exc),
                exc_info=True,
            )
            return SaveResult(success=False, blacklisted=dropped, error=str(exc))

        MATCHES_SAVED.labels(sport=sport.value, path=path).inc(count)
        return SaveResult(success=True, count=count, blacklisted=dropped, skipped_terminal=len(frozen))

    # ── Sync operations ─────────────────────────────────────────────────
    async def sync_today(self, sport: Sport = Sport.FOOTBALL) -> SyncResult:
        """Fetch, transform and upsert every match on today's date."""
        provider = self._providers.get(sport)
        if provider is None:
            return SyncResult(success=False, sport=sport, error=f"no provider for {sport.value}")

        if self._store is not None:
            await self.reload_blacklist()

        day = self.today()
        envelope = await provider.fetch_by_date(day, self._settings.sync_timezone)
        if not envelope.success:
            logger.warning("sync_today_fetch_failed", sport=sport.value, date=day.isoformat(), error=envelope.error)
            return SyncResult(success=False, sport=sport, error=envelope.error)

        matches, dropped = self.filter_blacklisted(transform_matches(sport, envelope.data))
        result = await self._persist(sport, matches, dropped, path="today")
        logger.info(
            "sync_today_completed",
            sport=sport.value,
            date=day.isoformat(),
            fetched=result.fetched,
            saved=result.saved,
            saved_count=result.saved_count,
            blacklisted=result.blacklisted,
        )
        return result

    async def sync_live(self, sport: Sport = Sport.FOOTBALL) -> SyncResult:
        """Fetch in-play matches; write only when the live set is non-empty."""
        provider = self._providers.get(sport)
        if provider is None:
            return SyncResult(success=False, sport=sport, error=f"no provider for {sport.value}")

        envelope = await provider.fetch_live()
        if not envelope.success:
            logger.warning("sync_live_fetch_failed", sport=sport.value, error=envelope.error)
            return SyncResult(success=False, sport=sport, error=envelope.error)

        matches, dropped = self.filter_blacklisted(transform_matches(sport, envelope.data))
        LIVE_MATCHES.labels(sport=sport.value).set(len(matches))
        if not matches:
            logger.debug("sync_live_empty", sport=sport.value, blacklisted=dropped)
            return SyncResult(success=True, sport=sport, blacklisted=dropped)

        result = await self._persist(sport, matches, dropped, path="live")
        logger.info(
            "sync_live_completed",
            sport=sport.value,
            live=result.fetched,
            saved=result.saved,
            saved_count=result.saved_count,
        )
        return result

    async def _persist(self, sport: Sport, matches: list[Match], dropped: int, path: str) -> SyncResult:
        if self._store is None:
            return SyncResult(
                success=True,
                sport=sport,
                fetched=len(matches),
                saved=False,
                blacklisted=dropped,
                error=STORE_NOT_CONFIGURED,
                matches=matches,
            )
        saved = await self.save_matches(sport, matches, path=path)
        return SyncResult(
            success=saved.success,
            sport=sport,
            fetched=len(matches),
            saved=saved.success,
            saved_count=saved.count,
            blacklisted=dropped + saved.blacklisted,
            error=saved.error,
            matches=matches,
        )

    # ── Stuck-match repair ──────────────────────────────────────────────
    async def fix_stuck_matches(self, max_hours_live: float | None = None) -> StuckFixResult:
        """
        Force-close rows still flagged live well past any real match length.

        Rows with both scores become finished with the score copied into the
        fulltime fields; rows without scores become postponed (abandoned).
        Each write is verified from the row the store returns. Rows that fail
        stay matched by the same query and are retried next run.
        """
        if self._store is None:
            return StuckFixResult(success=False, error=STORE_NOT_CONFIGURED)

        hours = self._settings.stuck_max_hours_live if max_hours_live is None else max_hours_live
        threshold = self._now() - timedelta(hours=hours)
        try:
            stuck = await self._store.query(MatchFilters(is_live=True, date_before=threshold))
        except Exception as exc:
            logger.error("stuck_match_query_failed", error=str(exc), exc_info=True)
            return StuckFixResult(success=False, error=str(exc))

        outcomes = [await self._fix_stuck_row(row) for row in stuck]
        fixed = sum(1 for o in outcomes if o.success)
        result = StuckFixResult(
            success=True,
            checked=len(stuck),
            fixed=fixed,
            failed=len(outcomes) - fixed,
            rows=outcomes,
        )
        if stuck:
            logger.info(
                "stuck_matches_checked",
                threshold=threshold.isoformat(),
                checked=result.checked,
                fixed=result.fixed,
                failed=result.failed,
            )
        return result

    async def _fix_stuck_row(self, row: Match) -> StuckRowOutcome:
        assert self._store is not None
        codes = status_codes(row.sport)
        if row.home_score is not None and row.away_score is not None:
            action = MatchStatus.FINISHED
            draw = row.home_score == row.away_score
            patch = {
                "status": MatchStatus.FINISHED,
                "status_short": codes.finished_code,
                "status_long": codes.finished_long,
                "is_live": False,
                "ft_home": row.home_score,
                "ft_away": row.away_score,
                "home_team_winner": None if draw else row.home_score > row.away_score,
                "away_team_winner": None if draw else row.away_score > row.home_score,
            }
        else:
            action = MatchStatus.POSTPONED
            patch = {
                "status": MatchStatus.POSTPONED,
                "status_short": codes.abandoned_code,
                "status_long": codes.abandoned_long,
                "is_live": False,
            }

        try:
            updated = await self._store.update_match(row.sport, row.id, patch)
        except Exception as exc:
            STUCK_MATCHES_FIXED.labels(action=action.value, outcome="error").inc()
            logger.error(
                "stuck_match_fix_failed",
                sport=row.sport.value,
                match_id=row.id,
                action=action.value,
                error=str(exc),
                exc_info=True,
            )
            return StuckRowOutcome(sport=row.sport, match_id=row.id, action=action.value, success=False, error=str(exc))

        if updated is None or updated.is_live or updated.status != action:
            STUCK_MATCHES_FIXED.labels(action=action.value, outcome="unverified").inc()
            logger.warning(
                "stuck_match_fix_unverified",
                sport=row.sport.value,
                match_id=row.id,
                action=action.value,
                row_found=updated is not None,
            )
            return StuckRowOutcome(
                sport=row.sport,
                match_id=row.id,
                action=action.value,
                success=False,
                error="write not reflected in stored row",
            )

        STUCK_MATCHES_FIXED.labels(action=action.value, outcome="fixed").inc()
        logger.info(
            "stuck_match_fixed",
            sport=row.sport.value,
            match_id=row.id,
            action=action.value,
            score=f"{row.home_score}-{row.away_score}",
        )
        return StuckRowOutcome(sport=row.sport, match_id=row.id, action=action.value, success=True)

    # ── Rolling cache ───────────────────────────────────────────────────
    async def purge_expired(self, retention_days: int | None = None) -> PurgeResult:
        """Delete non-live matches that kicked off before the retention window."""
        if self._store is None:
            return PurgeResult(success=False, error=STORE_NOT_CONFIGURED)

        days = self._settings.match_retention_days if retention_days is None else retention_days
        threshold = self._now() - timedelta(days=days)
        try:
            deleted = await self._store.delete(MatchFilters(date_before=threshold, is_live=False))
        except Exception as exc:
            logger.error("matches_purge_failed", error=str(exc), exc_info=True)
            return PurgeResult(success=False, error=str(exc))

        logger.info("matches_purged", deleted=deleted, before=threshold.isoformat())
        return PurgeResult(success=True, deleted=deleted)

    # ── Read path ───────────────────────────────────────────────────────
    async def query_matches(self, filters: MatchFilters, day: Optional[date] = None) -> list[Match]:
        """
        Read matches for the HTTP layer, ordered by kickoff.

        ``day`` is expanded to that calendar day in the sync timezone.
        Returns an empty list when no store is configured.
        """
        if self._store is None:
            return []
        if day is not None:
            start, end = self.day_bounds(day)
            filters = filters.model_copy(update={"date_from": start, "date_before": end})
        return await self._store.query(filters)
