# bot.py
import os, logging
import discord
from discord.ext import commands
from discord import app_commands
from dotenv import load_dotenv
from pathlib import Path

from core.state import AppState
from core.db import db_init, db_close
from core.interaction import report_failure, unwrap_app_command_error

load_dotenv()
TOKEN    = os.getenv("DISCORD_TOKEN")
GUILD_ID = int(os.getenv("GUILD_ID", "0") or 0)
DEV_FORCE_CLEAN = os.getenv("DEV_FORCE_CLEAN", "0") == "1"
SUPPORT_SERVER = os.getenv("SUPPORT_SERVER") or None

BASE_DIR = Path(__file__).resolve().parent
DB_PATH  = os.getenv("DB_PATH", "thoracle.sqlite3")

# make relative paths project-relative
if not os.path.isabs(DB_PATH):
    DB_PATH = str((BASE_DIR / DB_PATH).resolve())

COGS = ["cogs.system", "cogs.matches", "cogs.seasons",
        "cogs.config", "cogs.decks", "cogs.stats"]

log = logging.getLogger("thoracle")


class ThoracleBot(commands.Bot):
    def __init__(self, state: AppState):
        # slash commands only; default intents are enough
        super().__init__(command_prefix="!", intents=discord.Intents.default())
        self.state = state

    async def setup_hook(self):
        # 1) Store
        db_init(self.state)

        # 2) Load cogs BEFORE syncing
        for ext in COGS:
            try:
                await self.load_extension(ext)
                log.info("[cogs] loaded %s", ext)
            except Exception:
                log.exception("[cogs] FAILED %s", ext)

        # 3) Dev guild gets its own copy for instant availability
        if GUILD_ID:
            guild = discord.Object(id=GUILD_ID)
            self.tree.copy_global_to(guild=guild)

            # (Optional during dev) drop stale global commands; the guild copy stays
            if DEV_FORCE_CLEAN:
                try:
                    log.info("[sync] clearing GLOBAL commands…")
                    self.tree.clear_commands(guild=None)
                    await self.tree.sync(guild=None)
                    log.info("[sync] GLOBAL cleared")
                except discord.HTTPException as e:
                    log.warning("[sync] global clear failed: %s", e)

            cmds = await self.tree.sync(guild=guild)
            log.info("[sync] %d commands synced to guild %s", len(cmds), GUILD_ID)
        else:
            cmds = await self.tree.sync()
            log.info("[sync] %d commands globally synced (may take a while)", len(cmds))

    async def on_ready(self):
        log.info("In guilds: %s", [g.id for g in self.guilds])
        log.info("Logged in as %s (ID: %s)", self.user, self.user.id)

    async def close(self):
        await super().close()
        db_close(self.state)


bot = ThoracleBot(AppState(db_path=DB_PATH, support_server=SUPPORT_SERVER))
tree = bot.tree


@tree.error
async def on_app_command_error(interaction: discord.Interaction, error: app_commands.AppCommandError):
    await report_failure(interaction, unwrap_app_command_error(error), log)


if __name__ == "__main__":
    if not TOKEN:
        raise SystemExit("DISCORD_TOKEN missing in .env")
    bot.run(TOKEN, root_logger=True)
