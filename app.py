import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from slack_bolt import App
from slack_bolt.adapter.fastapi import SlackRequestHandler

from helpdesk_bot.logger import logger
from helpdesk_bot.config import validate_environment_variables, is_openai_configured
from helpdesk_bot.admin_api import create_admin_router
from helpdesk_bot.analyst import AIAnalyst
from helpdesk_bot.db import get_articles_collection
from helpdesk_bot.interactions import InteractionLog
from helpdesk_bot.kb_client import KnowledgeBaseClient
from helpdesk_bot.keywords import get_keyword_extractor
from helpdesk_bot.llm import ChatModel
from helpdesk_bot.rate_limiter import openai_rate_limiter
from helpdesk_bot.search import IntelligentSearchEngine
from helpdesk_bot.store import MongoArticleStore
from helpdesk_bot.support import SupportAssistant, get_error_reply
from helpdesk_bot.sync import KnowledgeBaseSync
from helpdesk_bot.utils import strip_leading_mention

# Validate environment variables at startup
validate_environment_variables()

# Core services
store = MongoArticleStore(get_articles_collection())
kb_client = KnowledgeBaseClient()
keyword_extractor = get_keyword_extractor()
search_engine = IntelligentSearchEngine(store, keyword_extractor)
kb_sync = KnowledgeBaseSync(store, kb_client, keyword_extractor)
interactions = InteractionLog()
analyst = AIAnalyst(ChatModel.from_env() if is_openai_configured() else None)
assistant = SupportAssistant(
    store,
    search_engine,
    analyst,
    interactions=interactions,
    rate_limiter=openai_rate_limiter,
)

# Slack app setup
slack_app = App(
    token=os.environ["SLACK_BOT_TOKEN"],
    signing_secret=os.environ["SLACK_SIGNING_SECRET"],
    # Ensure Slack gets an ACK within 3 seconds even if processing is longer
    process_before_response=True,
)
handler = SlackRequestHandler(slack_app)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if kb_client.is_configured():
        kb_sync.start_auto_sync(run_immediately=True)
    else:
        logger.warning("KB_API_TOKEN is not set; scheduled knowledge base sync is disabled")
    yield
    kb_sync.stop_auto_sync()


fastapi_app = FastAPI(lifespan=lifespan)
fastapi_app.include_router(
    create_admin_router(
        store=store,
        sync=kb_sync,
        search_engine=search_engine,
        interactions=interactions,
        kb_configured=kb_client.is_configured,
        admin_username=os.getenv("ADMIN_USERNAME", "admin"),
        admin_password=os.getenv("ADMIN_PASSWORD"),
    )
)


def _reply(text: str, user_id: str, team_id: str | None, say) -> None:
    try:
        say(assistant.handle_message(text, user_id=user_id, team_id=team_id))
    except Exception as e:
        logger.exception("Error handling support request from user_id=%s", user_id)
        say(get_error_reply(e))


@slack_app.event("app_mention")
def handle_mention(event, say, body):
    # Strip leading '<@BOTID>' mention so length checks and commands work on real text.
    text = strip_leading_mention(event.get("text", "") or "")
    team_id = body.get("team_id") or event.get("team")
    _reply(text, event.get("user", ""), team_id, say)


@slack_app.event("message")
def handle_direct_message(event, say, body):
    # Only answer direct messages from people; channel traffic goes through mentions
    if event.get("channel_type") != "im" or event.get("bot_id") or event.get("subtype"):
        return
    team_id = body.get("team_id") or event.get("team")
    _reply(event.get("text", "") or "", event.get("user", ""), team_id, say)


@fastapi_app.post("/slack/events")
async def slack_events(request: Request):
    try:
        await request.json()
    except Exception:
        raise HTTPException(status_code=400, detail="No JSON received")

    # Delegate to Slack Bolt FastAPI handler
    return await handler.handle(request)


@fastapi_app.get("/")
async def ping():
    return JSONResponse({"status": "ok"})


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app:fastapi_app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 3000)),
        reload=os.getenv("ENV") != "prod",
    )
