from telegram import Update, User
from telegram.ext import ContextTypes

async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Send a welcome message when the command /start is issued."""
    if not update.effective_user or not update.message:
        return
        
    user: User = update.effective_user
    await update.message.reply_html(
        f"Hi {user.mention_html()}! I'm your AMM Trade Bot.\n\n"
        f"💱 <b>Trading</b>\n"
        f"• Use /trade followed by a plain-English command to swap or add liquidity\n"
        f"• Use /createpool to create a pool for a new token pair\n\n"
        f"📊 <b>Pools</b>\n"
        f"• Ask /trade for reserves, swap counts or price distribution of a pool\n\n"
        f"Use /help to see every command."
    )
