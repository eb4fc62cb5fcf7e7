from telegram import Update
from telegram.ext import ContextTypes
import logging

# Enable logging
logger = logging.getLogger(__name__)

async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Show help information."""
    if not update.message:
        logger.error("Failed to get message from update")
        return

    # Use plain text without Markdown for safer rendering
    help_text: str = (
        "🤖 AMM Trade Bot Commands\n\n"

        "Trading:\n"
        "/trade <command> - Swap, add liquidity or query a pool in plain English\n"
        "   e.g. /trade swap 10 testUSDC for ETH with 0.5% slippage\n"
        "   e.g. /trade deposit 100 testUSDC and 0.05 ETH\n"
        "   e.g. /trade how many swaps happened today in the testUSDC-ETH pool\n"
        "/createpool <tokenA> <tokenB> - Create a pool for a new pair\n\n"

        "Other:\n"
        "/help - Show this help message\n"
        "/start - Start or restart the bot\n\n"

        "Trades are only sent after every required approval has confirmed. "
        "A rejected or reverted transaction is never resent automatically."
    )
    await update.message.reply_text(help_text)
