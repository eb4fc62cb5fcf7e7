import logging
import sys

from telegram.ext import Application, CommandHandler

from utils.chat import create_private_chat_wrapper
from utils.config import TELEGRAM_BOT_TOKEN, TOKEN_LIST_URL
from commands.start import start
from commands.help import help_command
from commands.trade import trade_command, createpool_command
from services import token_registry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler('bot.log')
    ]
)
# Set specific module log levels
logging.getLogger('httpx').setLevel(logging.ERROR)  # Disable httpx request logs
logging.getLogger('urllib3').setLevel(logging.WARNING)
logging.getLogger('asyncio').setLevel(logging.WARNING)
logging.getLogger('telegram').setLevel(logging.INFO)

# Create logger
logger = logging.getLogger(__name__)


async def post_init(application: Application) -> None:
    """Load the remote token list, if one is configured, before polling starts."""
    if not TOKEN_LIST_URL:
        return
    try:
        count = await token_registry.load_token_list(TOKEN_LIST_URL)
        logger.info(f"Token list loaded with {count} tokens")
    except Exception as e:
        logger.error(f"Failed to load token list from {TOKEN_LIST_URL}: {e}")


def main() -> None:
    """Start the bot."""
    token = TELEGRAM_BOT_TOKEN
    if not token:
        logger.error("TELEGRAM_BOT_TOKEN not found in environment variables!")
        return

    application = Application.builder().token(token).post_init(post_init).build()

    application.add_handler(CommandHandler("start", start))
    application.add_handler(CommandHandler("help", help_command))
    application.add_handler(CommandHandler("trade", create_private_chat_wrapper(trade_command)))
    application.add_handler(CommandHandler("createpool", create_private_chat_wrapper(createpool_command)))

    logger.info("Starting bot polling...")
    application.run_polling()


if __name__ == "__main__":
    main()
