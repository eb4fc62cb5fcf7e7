#!/usr/bin/env python3
"""
Tests for the /trade and /createpool Telegram commands and the private chat guard.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from commands.trade import TRADE_USAGE, createpool_command, trade_command
from services.models import ExecutionResult, TransactionReceipt
from utils.chat import private_chat_only


def make_update(chat_type="private", user_id=42):
    status_message = MagicMock()
    status_message.text = "🔄 Working"
    status_message.edit_text = AsyncMock()

    update = MagicMock()
    update.message.reply_text = AsyncMock(return_value=status_message)
    update.effective_chat.type = chat_type
    update.effective_user.id = user_id
    return update, status_message


def make_context(args, engine=None):
    context = MagicMock()
    context.args = args
    context.bot_data = {"trade_engine": engine} if engine is not None else {}
    context.bot.username = "amm_trade_bot"
    return context


@pytest.mark.unit
class TestTradeCommand:

    @pytest.mark.asyncio
    async def test_usage_without_arguments(self):
        update, _ = make_update()

        await trade_command(update, make_context([]))

        update.message.reply_text.assert_awaited_once_with(TRADE_USAGE)

    @pytest.mark.asyncio
    async def test_runs_engine_and_replies_with_result(self):
        update, _ = make_update()
        engine = MagicMock()
        engine.handle_command = AsyncMock(return_value=ExecutionResult.success(
            plan_id="p1",
            receipt=TransactionReceipt("0xabc", status=1, block_number=7),
            step="action",
        ))

        await trade_command(update, make_context(["swap", "10", "AAA", "for", "BBB"], engine))

        args, kwargs = engine.handle_command.call_args
        assert args == ("swap 10 AAA for BBB",)
        assert callable(kwargs["status_callback"])
        final_reply = update.message.reply_text.await_args_list[-1].args[0]
        assert final_reply.startswith("✅ Transaction confirmed")
        assert "0xabc" in final_reply

    @pytest.mark.asyncio
    async def test_status_lines_edit_the_status_message(self):
        update, status_message = make_update()
        engine = MagicMock()

        async def handle_command(text, status_callback=None):
            await status_callback("Checking token allowance...")
            return ExecutionResult.cancelled(reason="user_cancelled", step="approval 1/1")

        engine.handle_command = handle_command

        await trade_command(update, make_context(["swap", "1", "AAA", "for", "BBB"], engine))

        status_message.edit_text.assert_awaited_once_with("🔄 Working\nChecking token allowance...")
        final_reply = update.message.reply_text.await_args_list[-1].args[0]
        assert final_reply.startswith("🚫 Cancelled at approval 1/1")

    @pytest.mark.asyncio
    async def test_unexpected_engine_error_is_reported(self):
        update, _ = make_update()
        engine = MagicMock()
        engine.handle_command = AsyncMock(side_effect=RuntimeError("boom"))

        await trade_command(update, make_context(["swap", "1", "AAA", "for", "BBB"], engine))

        update.message.reply_text.assert_awaited_with("❌ Error: boom")


@pytest.mark.unit
class TestCreatePoolCommand:

    @pytest.mark.asyncio
    async def test_requires_two_tokens(self):
        update, _ = make_update()

        await createpool_command(update, make_context(["AAA"]))

        update.message.reply_text.assert_awaited_once_with("Usage: /createpool <tokenA> <tokenB>")

    @pytest.mark.asyncio
    async def test_creates_pool(self):
        update, _ = make_update()
        engine = MagicMock()
        engine.create_pool = AsyncMock(return_value=ExecutionResult.success(
            report={"query": "createPool", "pool": "0xpool"}, step="create_pool",
        ))

        await createpool_command(update, make_context(["AAA", "CCC"], engine))

        assert engine.create_pool.await_args.args == ("AAA", "CCC")
        final_reply = update.message.reply_text.await_args_list[-1].args[0]
        assert "pool: 0xpool" in final_reply


@pytest.mark.unit
class TestPrivateChatGuard:

    @pytest.mark.asyncio
    async def test_group_chats_are_refused(self):
        update, _ = make_update(chat_type="group")
        handler = AsyncMock()

        await private_chat_only(update, make_context([]), handler, allowed_user_ids=[])

        handler.assert_not_awaited()
        assert "private messages" in update.message.reply_text.await_args.args[0]

    @pytest.mark.asyncio
    async def test_unlisted_user_is_refused(self):
        update, _ = make_update(user_id=7)
        handler = AsyncMock()

        await private_chat_only(update, make_context([]), handler, allowed_user_ids=[42])

        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_allowed_user_reaches_handler(self):
        update, _ = make_update(user_id=42)
        handler = AsyncMock(return_value="ok")
        context = make_context([])

        result = await private_chat_only(update, context, handler, allowed_user_ids=[42])

        assert result == "ok"
        handler.assert_awaited_once_with(update, context)
