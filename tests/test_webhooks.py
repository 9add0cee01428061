import pytest
import discord
from unittest.mock import AsyncMock, MagicMock

from broadcast.webhooks import broadcast_to_webhooks
from database.models import BroadcastWebhook
from utils.screenshot import Screenshot

GOOD = BroadcastWebhook(1, "Good Guild", "https://discord.com/api/webhooks/1/good")
BAD = BroadcastWebhook(2, "Bad Guild", "not a webhook")

def patch_from_url(mocker, webhook):
    def from_url(url, **kwargs):
        if url == BAD.webhook_url:
            raise ValueError("Invalid webhook URL given.")
        partial = MagicMock()
        partial.fetch = AsyncMock(return_value=webhook)
        return partial
    return mocker.patch("broadcast.webhooks.discord.Webhook.from_url", side_effect=from_url)

@pytest.mark.asyncio
async def test_sends_to_valid_webhooks_only(mocker, bot):
    webhook = MagicMock()
    webhook.send = AsyncMock()
    mocker.patch("broadcast.webhooks.webhook_db.get_all", new_callable=AsyncMock, return_value=[GOOD, BAD])
    patch_from_url(mocker, webhook)

    embed = discord.Embed(title="report")
    await broadcast_to_webhooks(bot, "A bad actor has been reported.", embed)

    webhook.send.assert_awaited_once()
    kwargs = webhook.send.call_args.kwargs
    assert kwargs["content"] == "A bad actor has been reported."
    assert kwargs["embed"] is embed
    assert kwargs["username"] == "Janitor"
    assert "file" not in kwargs
    # the bad url is reported, not raised
    bot.ops_log.error.assert_awaited_once()

@pytest.mark.asyncio
async def test_screenshot_is_attached(mocker, bot):
    webhook = MagicMock()
    webhook.send = AsyncMock()
    mocker.patch("broadcast.webhooks.webhook_db.get_all", new_callable=AsyncMock, return_value=[GOOD])
    patch_from_url(mocker, webhook)

    await broadcast_to_webhooks(bot, "msg", discord.Embed(), Screenshot("proof.png", b"png"))

    file = webhook.send.call_args.kwargs["file"]
    assert file.filename == "proof.png"

@pytest.mark.asyncio
async def test_send_failure_is_contained(mocker, bot):
    webhook = MagicMock()
    webhook.send = AsyncMock(side_effect=discord.HTTPException(MagicMock(status=500), "oops"))
    mocker.patch("broadcast.webhooks.webhook_db.get_all", new_callable=AsyncMock, return_value=[GOOD])
    patch_from_url(mocker, webhook)

    await broadcast_to_webhooks(bot, "msg", discord.Embed())

    bot.ops_log.error.assert_awaited_once()
    assert "Good Guild" in bot.ops_log.error.call_args[0][1]
