"""
Module: bot/main.py

Entry point for the Pawtimer Discord Bot.
Initializes the bot, registers commands, and defines event handlers
for bot lifecycle, incoming messages, disconnection, and reconnection.
"""
import nextcord
from colorama import Fore, Style
from config import DISCORD_BOT_TOKEN, DISCORD_APPLICATION_ID
from utils import log_message
from bot_context import bot, db, scheduler, poll_timers, event_extractors
from scheduler.status import status_report

# Import command modules to register slash commands
import commands.timer

if not DISCORD_BOT_TOKEN or not DISCORD_APPLICATION_ID:
    raise EnvironmentError("Missing DISCORD_BOT_TOKEN or DISCORD_APPLICATION_ID in .env file")

@bot.event
async def on_ready():
    """
    Handler for the bot's ready event.

    Logs bot identity, syncs slash commands, delivers timers missed while
    offline, then starts the poll loop.
    """
    log_message(f'Logged in as {bot.user.name} ({bot.user.id})', "info")

    try:
        await bot.sync_application_commands()
        log_message("Synced global application commands", "info")
    except Exception as e:
        log_message(f"Failed to sync application commands: {e}", "error")

    await scheduler.recover()
    if not poll_timers.is_running():
        poll_timers.start()

    perms = nextcord.Permissions()
    perms.send_messages = True
    perms.view_channel = True
    perms.read_message_history = True

    invite_url = nextcord.utils.oauth_url(
        client_id=DISCORD_APPLICATION_ID,
        permissions=perms,
        scopes=["bot", "applications.commands"]
    )
    print(f"{Fore.CYAN}Bot invite URL: {Fore.YELLOW}{invite_url}{Style.RESET_ALL}")
    log_message("Bot is ready to receive DMs!", "info")

@bot.event
async def on_message(msg: nextcord.Message):
    """
    Handler for every incoming message.

    Answers `!timer` with the channel's timer status; otherwise passes the
    text through each configured event extractor and arms the resulting timers.
    """
    if msg.author.id == bot.user.id:
        return

    channel_id = str(msg.channel.id)
    log_message(f"Message from {msg.author} in channel {channel_id}", "debug")

    try:
        if msg.content.strip().lower() == '!timer':
            await msg.channel.send(status_report(scheduler.status_all(channel_id)))
            return

        for extractor in event_extractors:
            for event in extractor(msg.content) or ():
                await scheduler.handle_event(channel_id, event)
    except Exception as e:
        log_message(f"Error handling message: {e}", "error")

@bot.event
async def on_application_command_error(interaction, error):
    """
    Handler for errors during slash command execution.

    Logs the error and notifies the user of an internal failure.
    """
    log_message(f"Slash command error: {error}", "error")
    try:
        await interaction.response.send_message("❌ An internal error occurred.", ephemeral=True)
    except nextcord.HTTPException as e:
        log_message(f"Failed to report slash command error: {e}", "warning")

@bot.event
async def on_error(event_method, *args, **kwargs):
    """
    Catch-all handler for unhandled errors in any event.

    Logs the event method name and full traceback when an error occurs.
    """
    import traceback
    tb = traceback.format_exc()
    log_message(f"Unhandled error in event {event_method}: {tb}", "error")

@bot.event
async def on_disconnect():
    """
    Handler for bot disconnection.

    Stops polling, cancels pending retries, and closes the database. Timers
    stay persisted and are recovered when the connection resumes.
    """
    log_message("Bot disconnected from Discord, pausing timers.", "warning")
    poll_timers.cancel()
    await scheduler.stop()
    db.close()

@bot.event
async def on_resumed():
    """
    Handler for bot reconnection after a disconnect.

    Reconnects the database, delivers timers that came due meanwhile, and
    restarts the poll loop.
    """
    log_message("Bot resumed connection, reconnecting DB and recovering timers.", "info")
    try:
        db.connect()
        log_message("Database reconnected successfully.", "debug")
    except Exception as e:
        log_message(f"Failed to reconnect database: {e}", "error")
    await scheduler.recover()
    # A cancelled loop can still report running until its task unwinds
    if poll_timers.is_running():
        poll_timers.restart()
    else:
        poll_timers.start()

# Bot startup
log_message("Bot is starting up...")
try:
    bot.run(DISCORD_BOT_TOKEN)
finally:
    db.close()
    log_message("Database closed, bot stopped.", "info")
