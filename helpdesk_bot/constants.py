"""
Tunables shared across the helpdesk bot.
"""
import os

# MongoDB
MONGODB_SERVER_SELECTION_TIMEOUT_MS = 5000
MONGODB_DATABASE_NAME = os.getenv("MONGO_DB_NAME", "helpdesk_bot")

# OpenAI
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
OPENAI_API_TIMEOUT_SECONDS = 30.0
OPENAI_KEYWORD_TIMEOUT_SECONDS = 15.0
OPENAI_KEYWORD_TEMPERATURE = 0.1
OPENAI_KEYWORD_MAX_TOKENS = 300
OPENAI_ANALYSIS_TEMPERATURE = 0.1
OPENAI_ANALYSIS_MAX_TOKENS = 2000

# Upstream knowledge base API
KB_API_BASE_URL = os.getenv("KB_API_BASE_URL", "https://app.atera.com/api/v3/knowledgebases")
KB_ARTICLE_URL_TEMPLATE = os.getenv(
    "KB_ARTICLE_URL_TEMPLATE",
    "https://helpdesk.example.com/knowledgebase/article/{article_id}",
)
KB_API_PAGE_SIZE = 50
KB_API_MAX_PAGES = 20
KB_API_TIMEOUT_SECONDS = 30
KB_STATUS_PUBLISHED = 2
KB_PLACEHOLDER_TITLE = "Knowledge Base Article"

# Synchronization
SYNC_INTERVAL_HOURS = int(os.getenv("SYNC_INTERVAL_HOURS", "24"))
KEYWORD_BACKFILL_DELAY_SECONDS = 0.1

# Keyword extraction
MAX_ARTICLE_KEYWORDS = 7
MAX_FALLBACK_TITLE_KEYWORDS = 4
MAX_KEYWORD_CONTENT_CHARS = 2000
MIN_KEYWORD_LENGTH = 3
MAX_KEYWORD_LENGTH = 49

# Search
KEYWORD_SEARCH_LIMIT = 5
CHAT_SEARCH_LIMIT = 3
CHAT_MIN_RELEVANCE_SCORE = 10
SEARCH_EXCERPT_LENGTH = 150
INSIGHT_EXCERPT_LENGTH = 120

# Chat turn
MIN_MESSAGE_LENGTH = 3
MAX_MESSAGE_LENGTH = 1000

# Rate limiting (AI analysis requests per team)
RATE_LIMIT_OPENAI_MAX = int(os.getenv("RATE_LIMIT_OPENAI_MAX", "100"))
RATE_LIMIT_OPENAI_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_OPENAI_WINDOW_SECONDS", "86400"))  # 24 hours

# Helpdesk ticket link appended to every answer
HELPDESK_TICKET_URL = os.getenv("HELPDESK_TICKET_URL", "https://helpdesk.example.com/tickets/add")
