"""
Status update utilities for long-running operations.
Provides the status callback type and helpers for reporting progress.
"""
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

StatusCallback = Callable[[str], Union[None, Awaitable[None]]]

logger = logging.getLogger(__name__)

async def notify(status_callback: Optional[StatusCallback], message: str) -> None:
    """
    Send a progress line to a status callback, if one was supplied.

    Both plain and async callbacks are accepted. A failing callback is logged
    and otherwise ignored so that progress reporting never aborts a trade.

    Args:
        status_callback: Optional callback receiving status lines
        message: Human-readable status line
    """
    if status_callback is None:
        return
    try:
        result = status_callback(message)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.warning(f"Status callback failed for message '{message}': {e}")

def create_status_callback(
    message_obj: Any, 
    update_method: str = 'edit_text', 
    max_lines: int = 15, 
    header_lines: int = 4
) -> StatusCallback:
    """
    Create a status callback function for use with messaging platforms.
    
    The callback appends each status line to a message object (like a Telegram
    message) while keeping the message at a reasonable length.
    
    Args:
        message_obj: The message object to update (e.g., Telegram message)
        update_method (str): The method of message_obj to call for updates
        max_lines (int): Maximum number of lines to keep in the message
        header_lines (int): Number of header lines to always preserve
        
    Returns:
        StatusCallback: A callback function that can be passed to operations
        
    Example:
        response = await update.message.reply_text("Working on your trade...")
        status_cb = create_status_callback(response)
        result = await engine.handle_command(text, status_callback=status_cb)
    """
    async def callback(message: str) -> None:
        current_text = getattr(message_obj, 'text', '') or ''
        
        lines = current_text.split('\n')
        if len(lines) > max_lines:
            # Keep header lines and the most recent updates
            current_text = '\n'.join(
                lines[:header_lines] + 
                ["..."] + 
                lines[-(max_lines - header_lines - 1):]
            )
        
        update_func = getattr(message_obj, update_method)
        await update_func(f"{current_text}\n{message}")
        
    return callback
