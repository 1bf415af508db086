"""
Admin and diagnostics HTTP endpoints.

Everything except /api/health sits behind HTTP Basic auth. Operations that
need an unconfigured dependency answer 503 before doing any work; a sync
trigger while another sync runs answers 409.
"""
import secrets
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from helpdesk_bot.config import get_service_status
from helpdesk_bot.interactions import InteractionLog
from helpdesk_bot.logger import logger
from helpdesk_bot.search import IntelligentSearchEngine, to_results
from helpdesk_bot.store import ArticleStore
from helpdesk_bot.sync import KnowledgeBaseSync

security = HTTPBasic()


class SearchRequest(BaseModel):
    query: str = ""


def create_admin_router(
    store: ArticleStore,
    sync: KnowledgeBaseSync,
    search_engine: IntelligentSearchEngine,
    interactions: InteractionLog | None,
    kb_configured,
    admin_username: str | None,
    admin_password: str | None,
) -> APIRouter:
    """
    Build the admin router around already-constructed services.

    kb_configured is a zero-argument callable so the check reflects the
    environment at request time.
    """
    router = APIRouter()

    def verify_admin(credentials: HTTPBasicCredentials = Depends(security)) -> str:
        if not admin_username or not admin_password:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Admin API is disabled: ADMIN_USERNAME/ADMIN_PASSWORD are not configured",
            )
        username_ok = secrets.compare_digest(credentials.username, admin_username)
        password_ok = secrets.compare_digest(credentials.password, admin_password)
        if not (username_ok and password_ok):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Incorrect username or password",
                headers={"WWW-Authenticate": "Basic"},
            )
        return credentials.username

    def require_kb_api() -> None:
        if not kb_configured():
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Knowledge base sync is unavailable: KB_API_TOKEN is not configured",
            )

    def require_query(body: SearchRequest) -> str:
        query = body.query.strip()
        if not query:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Query parameter is required")
        return query

    @router.get("/api/health")
    async def health():
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "services": get_service_status(),
        }

    @router.get("/api/bot/config")
    async def bot_config(username: str = Depends(verify_admin)):
        services = get_service_status()
        config = {
            "slack_bot_configured": services["slack_bot"],
            "openai_configured": services["openai"],
            "kb_api_configured": services["kb_api"],
            "database_configured": services["database"],
            "knowledge_base_articles": 0,
            "sample_articles": [],
        }
        try:
            articles = await run_in_threadpool(store.all)
            active = [article for article in articles if article.is_active]
            config["knowledge_base_articles"] = len(active)
            config["sample_articles"] = [
                {"id": article.article_id, "title": article.title} for article in active[:3]
            ]
        except Exception as e:
            logger.error("Could not get article count: %s", e)
            config["db_error"] = str(e)
        return config

    @router.post("/api/sync/daily")
    async def sync_daily(username: str = Depends(verify_admin)):
        require_kb_api()
        logger.info("Manual sync requested by %s", username)
        stats = await run_in_threadpool(sync.trigger_manual_sync)
        if stats is None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Sync already running")
        return {
            "success": not any(error.startswith("Fatal") for error in stats.errors),
            "message": "Daily sync completed",
            "stats": stats.to_dict(),
        }

    @router.get("/api/sync/status")
    async def sync_status(username: str = Depends(verify_admin)):
        stats = await run_in_threadpool(sync.get_sync_stats)
        return {"success": True, "running": sync.is_running(), "stats": stats.to_dict()}

    @router.post("/api/sync/regenerate-keywords")
    async def regenerate_keywords(username: str = Depends(verify_admin)):
        require_kb_api()
        stats = await run_in_threadpool(sync.regenerate_keywords)
        if stats is None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Sync already running")
        return {
            "success": True,
            "message": "Keywords regenerated",
            "stats": {
                "keywordsGenerated": stats.keywords_generated,
                "totalArticles": stats.total_articles,
                "errors": list(stats.errors),
            },
        }

    @router.post("/api/test/kb-search")
    async def test_kb_search(body: SearchRequest, username: str = Depends(verify_admin)):
        query = require_query(body)
        keywords = await run_in_threadpool(search_engine.extract_keywords, query)
        scored = await run_in_threadpool(search_engine.search, query, keywords=keywords)
        results = to_results(scored)
        return {
            "query": query,
            "keywords": {
                "primary": keywords.primary,
                "secondary": keywords.secondary,
                "context": keywords.context,
            },
            "foundArticles": len(results),
            "articles": [result.to_dict() for result in results],
        }

    @router.post("/api/test/search")
    async def test_search(body: SearchRequest, username: str = Depends(verify_admin)):
        query = require_query(body)
        results = to_results(await run_in_threadpool(search_engine.search_strict, query))
        return {
            "query": query,
            "results_count": len(results),
            "results": [result.to_dict() for result in results],
        }

    @router.get("/api/admin/kb-stats")
    async def kb_stats(username: str = Depends(verify_admin)):
        try:
            articles = await run_in_threadpool(store.all)
        except Exception as e:
            logger.error("KB stats error: %s", e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to get knowledge base statistics",
            )
        active = [article for article in articles if article.is_active]
        updates = [article.last_updated for article in active if article.last_updated]
        return {
            "stats": {
                "total_articles": len(active),
                "articles_with_content": sum(1 for a in active if a.content.strip()),
                "articles_with_keywords": sum(1 for a in active if a.search_keywords),
                "latest_update": max(updates).isoformat() if updates else None,
            }
        }

    @router.get("/api/analytics/interactions")
    async def recent_interactions(limit: int = 20, username: str = Depends(verify_admin)):
        if interactions is None:
            return {"interactions": []}
        limit = max(1, min(limit, 100))
        try:
            rows = await run_in_threadpool(interactions.recent, limit)
        except Exception as e:
            logger.error("Failed to load interactions: %s", e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to load interactions",
            )
        return {"interactions": rows}

    return router
