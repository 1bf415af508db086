"""
Knowledge base synchronization.

Reconciles the upstream article set with the local store: inserts new
articles, updates changed ones without touching their search keywords,
backfills missing keywords and deletes articles that disappeared upstream.
Runs on a schedule and on demand; at most one run is in flight at a time.
"""
import threading
import time
from typing import Protocol

from apscheduler.schedulers.background import BackgroundScheduler

from helpdesk_bot.constants import SYNC_INTERVAL_HOURS
from helpdesk_bot.keywords import KeywordExtractor
from helpdesk_bot.logger import logger
from helpdesk_bot.models import Article, RawArticle, SyncStats, utcnow
from helpdesk_bot.rate_limiter import Throttle
from helpdesk_bot.store import ArticleStore

SYNC_JOB_ID = "knowledge_base_sync"


class ArticleSource(Protocol):
    last_fetch_complete: bool

    def fetch_quality_articles(self) -> list[RawArticle]:
        ...


class _StatsBuilder:
    """Mutable counters for one run, frozen into SyncStats at the end."""

    def __init__(self):
        self.last_sync_time = utcnow()
        self.articles_checked = 0
        self.articles_added = 0
        self.articles_updated = 0
        self.keywords_generated = 0
        self.total_articles = 0
        self.errors: list[str] = []

    def build(self) -> SyncStats:
        return SyncStats(
            last_sync_time=self.last_sync_time,
            articles_checked=self.articles_checked,
            articles_added=self.articles_added,
            articles_updated=self.articles_updated,
            keywords_generated=self.keywords_generated,
            total_articles=self.total_articles,
            errors=tuple(self.errors),
        )


def needs_update(existing: Article, upstream: RawArticle) -> bool:
    return (
        existing.title != upstream.title
        or existing.content != upstream.content
        or list(existing.tags) != list(upstream.tags)
    )


class KnowledgeBaseSync:
    def __init__(
        self,
        store: ArticleStore,
        source: ArticleSource,
        extractor: KeywordExtractor,
        throttle: Throttle | None = None,
        interval_hours: float = SYNC_INTERVAL_HOURS,
    ):
        self.store = store
        self.source = source
        self.extractor = extractor
        self.throttle = throttle or Throttle()
        self.interval_hours = interval_hours
        self._run_lock = threading.Lock()
        self._last_stats: SyncStats | None = None
        self._scheduler: BackgroundScheduler | None = None

    def is_running(self) -> bool:
        return self._run_lock.locked()

    def sync(self, wait: bool = True) -> SyncStats | None:
        """
        Run one synchronization. With wait=False, returns None immediately if
        another run is already in progress instead of queueing behind it.
        """
        if not self._run_lock.acquire(blocking=wait):
            logger.info("Knowledge base sync already running, skipping this trigger")
            return None
        try:
            stats = self._perform_sync()
            self._last_stats = stats
            return stats
        finally:
            self._run_lock.release()

    def trigger_manual_sync(self) -> SyncStats | None:
        logger.info("Manual sync triggered")
        return self.sync(wait=False)

    def regenerate_keywords(self) -> SyncStats | None:
        """Clear every keyword list, then sync so the backfill regenerates them."""
        if not self._run_lock.acquire(blocking=False):
            logger.info("Knowledge base sync already running, cannot regenerate keywords now")
            return None
        try:
            cleared = self.store.clear_keywords()
            logger.info("Cleared search keywords on %s articles", cleared)
            stats = self._perform_sync()
            self._last_stats = stats
            return stats
        finally:
            self._run_lock.release()

    def get_sync_stats(self) -> SyncStats:
        if self._last_stats is not None:
            return self._last_stats
        return SyncStats(last_sync_time=utcnow(), total_articles=self.store.count())

    def _perform_sync(self) -> SyncStats:
        logger.info("Starting knowledge base synchronization")
        stats = _StatsBuilder()
        started = time.monotonic()

        try:
            upstream = self.source.fetch_quality_articles()
            stats.articles_checked = len(upstream)
            existing_ids = self.store.list_ids()
        except Exception as e:
            logger.exception("Fatal error in knowledge base sync")
            stats.errors.append(f"Fatal sync error: {e}")
            return stats.build()

        for raw in upstream:
            try:
                if raw.id in existing_ids:
                    if self._update_existing(raw):
                        stats.articles_updated += 1
                else:
                    self.store.insert(Article.from_raw(raw))
                    existing_ids.add(raw.id)
                    stats.articles_added += 1
                    logger.debug("Added new article: %s", raw.title)
            except Exception as e:
                logger.error("Error processing article %s: %s", raw.id, e)
                stats.errors.append(f"Failed to process article {raw.id}: {e}")

        stats.keywords_generated = self._generate_missing_keywords(stats.errors)

        if self.source.last_fetch_complete:
            self._cleanup_removed(upstream, stats.errors)
        else:
            logger.warning("Upstream fetch was partial, keeping articles missing from it")
            stats.errors.append("Partial upstream fetch: removal of missing articles skipped")

        try:
            stats.total_articles = self.store.count()
        except Exception as e:
            logger.error("Could not count articles after sync: %s", e)
            stats.errors.append(f"Failed to count articles: {e}")

        logger.info(
            "Knowledge base sync completed in %sms: checked=%s added=%s updated=%s "
            "keywords=%s total=%s errors=%s",
            int((time.monotonic() - started) * 1000),
            stats.articles_checked,
            stats.articles_added,
            stats.articles_updated,
            stats.keywords_generated,
            stats.total_articles,
            len(stats.errors),
        )
        return stats.build()

    def _update_existing(self, raw: RawArticle) -> bool:
        existing = self.store.get(raw.id)
        if existing is None or not needs_update(existing, raw):
            return False

        self.store.update(
            raw.id,
            {
                "title": raw.title,
                "content": raw.content,
                "tags": list(raw.tags),
                "last_updated": raw.last_updated,
                "url": raw.url,
                "is_private": raw.is_private,
                "status": raw.status,
            },
        )
        logger.debug("Updated article: %s", raw.title)
        return True

    def _generate_missing_keywords(self, errors: list[str]) -> int:
        try:
            articles = self.store.find_missing_keywords()
        except Exception as e:
            logger.error("Could not list articles missing keywords: %s", e)
            errors.append(f"Failed to list articles missing keywords: {e}")
            return 0

        if not articles:
            logger.debug("All articles already have search keywords")
            return 0

        logger.info("Generating keywords for %s articles", len(articles))
        generated = 0
        for article in articles:
            try:
                self.throttle.wait()
                keywords = self.extractor.extract_for_article(article.title, article.content)
                if not keywords:
                    logger.warning("No keywords could be derived for article %s", article.article_id)
                    continue
                self.store.set_keywords(article.article_id, keywords)
                generated += 1
                logger.debug("Generated keywords for %s: %s", article.title, keywords)
            except Exception as e:
                logger.error("Failed to generate keywords for article %s: %s", article.article_id, e)
                errors.append(f"Failed to generate keywords for article {article.article_id}: {e}")
        return generated

    def _cleanup_removed(self, upstream: list[RawArticle], errors: list[str]) -> None:
        current_ids = {raw.id for raw in upstream}
        try:
            stale_ids = self.store.list_ids() - current_ids
        except Exception as e:
            logger.error("Could not list articles for cleanup: %s", e)
            errors.append(f"Failed to clean up removed articles: {e}")
            return

        if stale_ids:
            logger.info("Removing %s articles no longer upstream", len(stale_ids))
        for article_id in sorted(stale_ids):
            try:
                self.store.delete(article_id)
            except Exception as e:
                logger.error("Failed to delete article %s: %s", article_id, e)
                errors.append(f"Failed to delete article {article_id}: {e}")

    def _scheduled_sync(self) -> None:
        try:
            self.sync(wait=False)
        except Exception:
            logger.exception("Error in scheduled knowledge base sync")

    def start_auto_sync(self, run_immediately: bool = True) -> None:
        if self._scheduler is not None:
            logger.debug("Scheduled sync already started")
            return

        logger.info("Starting scheduled knowledge base sync every %s hours", self.interval_hours)
        self._scheduler = BackgroundScheduler(
            job_defaults={"coalesce": True, "max_instances": 1},
        )
        self._scheduler.add_job(
            self._scheduled_sync,
            "interval",
            hours=self.interval_hours,
            id=SYNC_JOB_ID,
            replace_existing=True,
        )
        self._scheduler.start()

        if run_immediately:
            threading.Thread(target=self._scheduled_sync, name="initial-kb-sync", daemon=True).start()

    def stop_auto_sync(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Scheduled knowledge base sync stopped")
