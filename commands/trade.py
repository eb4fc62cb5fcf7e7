"""
Commands for natural-language trading and explicit pool creation.
"""
import logging
from typing import List, Optional

from telegram import Message, Update
from telegram.ext import ContextTypes

from services.engine import TradeEngine, get_trade_engine
from services.transaction import transaction_formatter
from utils.status_updates import create_status_callback

# Configure module logger
logger = logging.getLogger(__name__)

TRADE_USAGE = (
    "Usage: /trade <command>\n\n"
    "Examples:\n"
    "/trade swap 10 testUSDC for ETH\n"
    "/trade swap 0.1 ETH for DAI with 1% slippage\n"
    "/trade deposit 100 testUSDC and 0.05 ETH\n"
    "/trade what are the reserves of the testUSDC-ETH pool"
)


def _engine(context: ContextTypes.DEFAULT_TYPE) -> TradeEngine:
    """Engine stored in bot_data (tests inject one there), or the shared engine."""
    engine: Optional[TradeEngine] = context.bot_data.get("trade_engine") if context.bot_data is not None else None
    return engine or get_trade_engine()


async def trade_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Run a free-text trade command through the engine and reply with the outcome."""
    message: Optional[Message] = update.message
    if not message:
        return

    args: List[str] = list(context.args or [])
    command_text = " ".join(args).strip()
    if not command_text:
        await message.reply_text(TRADE_USAGE)
        return

    user_id = update.effective_user.id if update.effective_user else None
    logger.info(f"Trade command from user {user_id}: {command_text}")

    status_message = await message.reply_text(f"🔄 Working on: {command_text}")
    status_callback = create_status_callback(status_message, max_lines=12, header_lines=1)

    try:
        engine = _engine(context)
        result = await engine.handle_command(command_text, status_callback=status_callback)
    except Exception as e:
        logger.exception(f"Trade command failed for user {user_id}")
        await message.reply_text(f"❌ Error: {str(e)}")
        return

    logger.info(f"Trade command for user {user_id} finished: {result.to_dict()}")
    await message.reply_text(transaction_formatter.format_result(result))


async def createpool_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Create the pool for a token pair: /createpool <tokenA> <tokenB>."""
    message: Optional[Message] = update.message
    if not message:
        return

    args: List[str] = list(context.args or [])
    if len(args) != 2:
        await message.reply_text("Usage: /createpool <tokenA> <tokenB>")
        return

    status_message = await message.reply_text(f"🔄 Creating pool {args[0]}/{args[1]}...")
    status_callback = create_status_callback(status_message, max_lines=12, header_lines=1)

    try:
        result = await _engine(context).create_pool(args[0], args[1], status_callback=status_callback)
    except Exception as e:
        logger.exception("Pool creation command failed")
        await message.reply_text(f"❌ Error: {str(e)}")
        return

    await message.reply_text(transaction_formatter.format_result(result))
