from datetime import date

from fastapi import APIRouter, Header, HTTPException, Request
from loguru import logger
from telegram import Update

from kasbot.deps import classifier, settings
from kasbot.models.schemas import IntentResult, ParseRequest

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/parse", response_model=IntentResult)
async def parse_message(request: ParseRequest):
    logger.info("Parsing message: {}", request.message)
    today = request.today or date.today()
    return await classifier.classify(request.message, today, request.usage_count)


@router.post("/telegram/webhook")
async def telegram_webhook(
    request: Request,
    x_telegram_bot_api_secret_token: str | None = Header(default=None),
):
    """Queue the update for the bot and acknowledge at once; handling happens in the background."""
    if settings.telegram_webhook_secret and x_telegram_bot_api_secret_token != settings.telegram_webhook_secret:
        raise HTTPException(status_code=403, detail="Invalid secret token")

    bot_app = getattr(request.app.state, "bot", None)
    if bot_app is None:
        raise HTTPException(status_code=503, detail="Bot is not running")

    payload = await request.json()
    update = Update.de_json(payload, bot_app.bot)
    if update is None:
        raise HTTPException(status_code=400, detail="Not a Telegram update")
    await bot_app.update_queue.put(update)
    return {"ok": True}
