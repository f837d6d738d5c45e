from loguru import logger
from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.constants import ParseMode
from telegram.error import BadRequest
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from kasbot.bot.messages import GENERIC_ERROR
from kasbot.config import get_settings
from kasbot.deps import router
from kasbot.models.schemas import Reply

settings = get_settings()


def _markup(reply: Reply) -> InlineKeyboardMarkup | None:
    if not reply.buttons:
        return None
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton(button.text, callback_data=button.callback_data) for button in row]
            for row in reply.buttons
        ]
    )


def _display_name(update: Update) -> str:
    user = update.effective_user
    if user is None:
        return "Driver"
    return user.full_name or "Driver"


async def _send(message, replies: list[Reply]) -> None:
    for reply in replies:
        await message.reply_text(reply.text, parse_mode=ParseMode.HTML, reply_markup=_markup(reply))


async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Every text message, commands included; the router owns the command table."""
    message = update.effective_message
    identity = str(update.effective_user.id)
    logger.info("Telegram message from {}: {}", identity, message.text)

    async def typing():
        await message.chat.send_action("typing")

    try:
        replies = await router.handle_text(
            identity, _display_name(update), message.text or "", on_start=typing
        )
    except Exception:
        logger.exception("Failed to handle message from {}", identity)
        replies = [Reply(text=GENERIC_ERROR)]
    await _send(message, replies)


async def handle_photo(update: Update, context: ContextTypes.DEFAULT_TYPE):
    message = update.effective_message
    identity = str(update.effective_user.id)
    try:
        replies = await router.handle_photo(identity, _display_name(update))
    except Exception:
        logger.exception("Failed to handle photo from {}", identity)
        replies = [Reply(text=GENERIC_ERROR)]
    await _send(message, replies)


async def handle_button(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Inline keyboard presses. ``edit`` replies replace the card that was pressed."""
    query = update.callback_query
    identity = str(query.from_user.id)
    logger.info("Callback from {}: {}", identity, query.data)

    # Nothing may be awaited before the router takes the identity lock
    try:
        replies = await router.handle_callback(identity, query.data or "")
    except Exception:
        logger.exception("Failed to handle callback {} from {}", query.data, identity)
        replies = [Reply(text=GENERIC_ERROR)]
    await query.answer()

    for reply in replies:
        if reply.edit:
            try:
                await query.edit_message_text(
                    reply.text, parse_mode=ParseMode.HTML, reply_markup=_markup(reply)
                )
                continue
            except BadRequest as e:
                # The card may be too old to edit; fall back to a new message
                logger.warning("Could not edit message: {}", e)
        await query.message.reply_text(reply.text, parse_mode=ParseMode.HTML, reply_markup=_markup(reply))


def build_bot_app() -> Application:
    """Build and return the Telegram bot application."""
    app = (
        Application.builder()
        .token(settings.telegram_bot_token)
        .concurrent_updates(True)
        .build()
    )

    app.add_handler(CallbackQueryHandler(handle_button))
    app.add_handler(MessageHandler(filters.PHOTO, handle_photo))
    app.add_handler(MessageHandler(filters.TEXT, handle_text))

    return app
