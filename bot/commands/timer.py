"""
Module: bot/commands/timer.py

Defines the `/timer` slash command, showing the remaining time until the next
rescue and card pull for the current DM channel.
"""
import nextcord
from bot_context import bot, scheduler
from scheduler.status import status_report
from utils import log_message

DM_ONLY = "⚠️ This command only works in DMs! Please send me a direct message to use timer features."

@bot.slash_command(
    name="timer",
    description="Show the remaining time until your next rescue and card pull"
)
async def timer_command(interaction: nextcord.Interaction):
    """
    Reply with the status of every timer kind for this DM channel.
    In a server channel, reply ephemerally that the command is DM-only.
    """
    if interaction.guild or not interaction.channel:
        await interaction.response.send_message(DM_ONLY, ephemeral=True)
        return

    channel_id = str(interaction.channel.id)
    report = status_report(scheduler.status_all(channel_id))
    log_message(f"User {interaction.user} ({interaction.user.id}) queried timers for {channel_id}", "info")
    await interaction.response.send_message(report)
