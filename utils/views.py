import discord
from typing import Optional

CONFIRMATION_TIMEOUT = 120.0

class ConfirmationView(discord.ui.View):
    """Confirm / Cancel prompt shown before a report is broadcast.

    `value` is True on confirm, False on cancel and stays None when the prompt expires.
    """

    def __init__(self, timeout: float = CONFIRMATION_TIMEOUT, author_id: Optional[int] = None):
        super().__init__(timeout=timeout)
        self.value: Optional[bool] = None
        self.author_id = author_id

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if self.author_id and interaction.user.id != self.author_id:
            await interaction.response.send_message("This confirmation is not for you.", ephemeral=True)
            return False
        return True

    @discord.ui.button(label="Confirm", style=discord.ButtonStyle.danger, custom_id="confirm")
    async def confirm(self, interaction: discord.Interaction, button: discord.ui.Button):
        self.value = True
        # defer so the caller can edit the original message
        await interaction.response.defer()
        self.stop()

    @discord.ui.button(label="Cancel", style=discord.ButtonStyle.secondary, custom_id="cancel")
    async def cancel(self, interaction: discord.Interaction, button: discord.ui.Button):
        self.value = False
        await interaction.response.defer()
        self.stop()

    async def on_timeout(self):
        self.stop()
