from datetime import timedelta

from kasbot.bot.router import SessionRouter
from kasbot.config import get_settings
from kasbot.db.repository import UserStoreRegistry
from kasbot.llm.parser import build_classifier

settings = get_settings()

registry = UserStoreRegistry(
    settings.data_dir,
    session_ttl=timedelta(minutes=settings.session_ttl_minutes),
    max_open=settings.max_open_stores,
)
classifier = build_classifier(settings)
router = SessionRouter(registry, classifier, settings)
