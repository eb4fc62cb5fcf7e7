from typing import Any, Callable, Coroutine, List, Optional
from telegram import Update
from telegram.ext import ContextTypes

from utils.config import TELEGRAM_ALLOWED_USER_IDS

Handler = Callable[[Update, ContextTypes.DEFAULT_TYPE], Coroutine[Any, Any, Any]]

async def private_chat_only(
    update: Update, 
    context: ContextTypes.DEFAULT_TYPE, 
    next_handler: Handler,
    allowed_user_ids: Optional[List[int]] = None,
) -> Optional[Any]:
    """
    Run a handler only in private chats with an allowed user.

    The bot signs with a single configured wallet, so trading commands must
    never run in groups or for strangers.
    
    Args:
        update: The update object
        context: The context object
        next_handler: The handler function to call if the chat is private
        allowed_user_ids: Telegram user ids allowed to trade; empty allows everyone
        
    Returns:
        Optional[Any]: The result of the next_handler or None if the update was refused
    """
    allowed = TELEGRAM_ALLOWED_USER_IDS if allowed_user_ids is None else allowed_user_ids

    if update.effective_chat and update.effective_chat.type != 'private':
        bot_username = context.bot.username
        if update.message:
            await update.message.reply_text(
                f"⚠️ For security reasons, I only work in private messages.\n\n"
                f"Please send me a direct message @{bot_username}."
            )
        return None

    user = update.effective_user
    if allowed and (user is None or user.id not in allowed):
        if update.message:
            await update.message.reply_text("⛔ You are not allowed to trade with this bot.")
        return None

    return await next_handler(update, context)

def create_private_chat_wrapper(handler_func: Handler) -> Handler:
    """
    Factory function to create private chat wrappers for handlers.
    
    Args:
        handler_func: The handler function to wrap
        
    Returns:
        Callable: A wrapped handler function that only works in private chats
    """
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> Any:
        return await private_chat_only(update, context, handler_func)
    return wrapper
