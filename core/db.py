import sqlite3, time, asyncio, logging
from contextlib import contextmanager
from typing import List, Dict, Any, Optional, Iterable, Tuple
from core.state import AppState
from core.models import Season, GuildConfig, Deck, Profile, Match, MatchPlayer
from core.points import settlement_deltas
from core.errors import (
    SeasonAlreadyOpen, NameTaken, SeasonNotClosed, NoOpenSeason, SeasonNotFound,
    DeckLimitReached, DeckNameTaken, DeckNotFound,
    MatchNotFound, CrossGuildMatch, NotAParticipant, AlreadyFinalized, AlreadyFullyConfirmed,
)

log = logging.getLogger(__name__)

BUSY_TIMEOUT_S = 30

CONFIG_COLUMNS = (
    "minimum_games", "points_gained", "points_lost", "points_per_draw",
    "base_points", "enable_draws", "deck_limit", "dispute_role_id",
)

def _conn(state: AppState) -> sqlite3.Connection:
    if state.closed:
        raise RuntimeError("database has been closed")
    conn = sqlite3.connect(state.db_path, timeout=BUSY_TIMEOUT_S)
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn

@contextmanager
def _read(state: AppState):
    conn = _conn(state)
    try:
        yield conn
    finally:
        conn.close()

@contextmanager
def _write(state: AppState):
    """One IMMEDIATE transaction; writers are serialized across threads."""
    conn = _conn(state)
    try:
        conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()

def _query_all(conn: sqlite3.Connection, sql: str, params=()):
    cur = conn.execute(sql, params)
    cols = [d[0] for d in cur.description] if cur.description else []
    return [dict(zip(cols, row)) for row in cur.fetchall()]

def _query_one(conn: sqlite3.Connection, sql: str, params=()):
    cur = conn.execute(sql, params)
    cols = [d[0] for d in cur.description] if cur.description else []
    row = cur.fetchone()
    return dict(zip(cols, row)) if row else None

def db_init(state: AppState):
    with _read(state) as conn, conn:
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("""
        CREATE TABLE IF NOT EXISTS seasons (
            id        INTEGER PRIMARY KEY AUTOINCREMENT,
            guild_id  TEXT NOT NULL,
            name      TEXT NOT NULL,
            start_ts  REAL NOT NULL,
            end_ts    REAL,
            UNIQUE (guild_id, name)
        );
        """)
        # at most one open season per guild
        conn.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS seasons_one_open
            ON seasons (guild_id) WHERE end_ts IS NULL;
        """)
        conn.execute("""
        CREATE TABLE IF NOT EXISTS guild_configs (
            guild_id        TEXT NOT NULL PRIMARY KEY,
            minimum_games   INTEGER NOT NULL,
            points_gained   INTEGER NOT NULL,
            points_lost     INTEGER NOT NULL,
            points_per_draw INTEGER NOT NULL,
            base_points     INTEGER NOT NULL,
            enable_draws    INTEGER NOT NULL,
            deck_limit      INTEGER NOT NULL,
            dispute_role_id TEXT
        );
        """)
        conn.execute("""
        CREATE TABLE IF NOT EXISTS decks (
            id        INTEGER PRIMARY KEY AUTOINCREMENT,
            guild_id  TEXT NOT NULL,
            user_id   TEXT NOT NULL,
            name      TEXT NOT NULL,
            deck_list TEXT,
            UNIQUE (guild_id, user_id, name)
        );
        """)
        conn.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            guild_id        TEXT NOT NULL,
            user_id         TEXT NOT NULL,
            points          INTEGER NOT NULL DEFAULT 0,
            current_deck_id INTEGER,
            PRIMARY KEY (guild_id, user_id)
        );
        """)
        conn.execute("""
        CREATE TABLE IF NOT EXISTS matches (
            id                TEXT NOT NULL PRIMARY KEY,
            guild_id          TEXT NOT NULL,
            channel_id        TEXT,
            message_id        TEXT,
            season_id         INTEGER NOT NULL REFERENCES seasons(id),
            winner_user_id    TEXT,
            dispute_thread_id TEXT,
            confirmed_at      REAL,
            created_ts        REAL NOT NULL
        );
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS matches_message ON matches (message_id);")
        conn.execute("CREATE INDEX IF NOT EXISTS matches_guild_season ON matches (guild_id, season_id);")
        conn.execute("""
        CREATE TABLE IF NOT EXISTS match_players (
            match_id  TEXT NOT NULL REFERENCES matches(id) ON DELETE CASCADE,
            seat      INTEGER NOT NULL,
            user_id   TEXT NOT NULL,
            deck_id   INTEGER,
            confirmed INTEGER NOT NULL DEFAULT 0,
            PRIMARY KEY (match_id, user_id)
        );
        """)
    log.info("[db] ready at %s", state.db_path)

def db_close(state: AppState):
    """Flush the WAL and refuse further connections."""
    if state.closed:
        return
    try:
        with _read(state) as conn:
            conn.execute("PRAGMA wal_checkpoint(TRUNCATE);")
    finally:
        state.closed = True
    log.info("[db] closed")

# ---------- row mapping ----------
def _season(row: dict) -> Season:
    return Season(id=int(row["id"]), guild_id=row["guild_id"], name=row["name"],
                  start_ts=float(row["start_ts"]), end_ts=row["end_ts"])

def _deck(row: dict) -> Deck:
    return Deck(id=int(row["id"]), guild_id=row["guild_id"], user_id=row["user_id"],
                name=row["name"], deck_list=row["deck_list"])

def _profile(row: dict) -> Profile:
    return Profile(guild_id=row["guild_id"], user_id=row["user_id"],
                   points=int(row["points"]), current_deck_id=row["current_deck_id"])

def _config(row: dict) -> GuildConfig:
    return GuildConfig(
        guild_id=row["guild_id"],
        minimum_games=int(row["minimum_games"]),
        points_gained=int(row["points_gained"]),
        points_lost=int(row["points_lost"]),
        points_per_draw=int(row["points_per_draw"]),
        base_points=int(row["base_points"]),
        enable_draws=bool(row["enable_draws"]),
        deck_limit=int(row["deck_limit"]),
        dispute_role_id=row["dispute_role_id"],
    )

def _load_match(conn: sqlite3.Connection, match_id: str) -> Optional[Match]:
    row = _query_one(conn, "SELECT * FROM matches WHERE id=?", (match_id,))
    if not row:
        return None
    players = _query_all(conn,
        "SELECT user_id, deck_id, confirmed FROM match_players WHERE match_id=? ORDER BY seat",
        (match_id,))
    return Match(
        id=row["id"],
        guild_id=row["guild_id"],
        channel_id=row["channel_id"],
        message_id=row["message_id"],
        season_id=int(row["season_id"]),
        winner_user_id=row["winner_user_id"],
        dispute_thread_id=row["dispute_thread_id"],
        confirmed_at=row["confirmed_at"],
        created_ts=float(row["created_ts"]),
        players=[MatchPlayer(user_id=p["user_id"], deck_id=p["deck_id"], confirmed=bool(p["confirmed"]))
                 for p in players],
    )

def _load_matches(conn: sqlite3.Connection, ids: Iterable[str]) -> List[Match]:
    out = []
    for mid in ids:
        m = _load_match(conn, mid)
        if m:
            out.append(m)
    return out

# ---------- CONFIG ----------
def _config_ensure(conn: sqlite3.Connection, guild_id: str) -> GuildConfig:
    d = GuildConfig(guild_id=str(guild_id))
    conn.execute(
        """INSERT OR IGNORE INTO guild_configs
             (guild_id, minimum_games, points_gained, points_lost, points_per_draw,
              base_points, enable_draws, deck_limit, dispute_role_id)
           VALUES (?,?,?,?,?,?,?,?,NULL)""",
        (d.guild_id, d.minimum_games, d.points_gained, d.points_lost, d.points_per_draw,
         d.base_points, int(d.enable_draws), d.deck_limit),
    )
    return _config(_query_one(conn, "SELECT * FROM guild_configs WHERE guild_id=?", (d.guild_id,)))

async def db_config_get(state: AppState, guild_id) -> GuildConfig:
    def _work():
        with _write(state) as conn:
            return _config_ensure(conn, str(guild_id))
    return await asyncio.to_thread(_work)

async def db_config_update(state: AppState, guild_id, changes: Dict[str, Any]) -> GuildConfig:
    """Apply only the named columns; unknown keys are rejected."""
    unknown = set(changes) - set(CONFIG_COLUMNS)
    if unknown:
        raise ValueError(f"unknown config fields: {sorted(unknown)}")

    def _work():
        with _write(state) as conn:
            _config_ensure(conn, str(guild_id))
            if changes:
                cols = list(changes)
                sets = ", ".join(f"{c} = ?" for c in cols)
                vals = [int(v) if isinstance(v, bool) else v for v in (changes[c] for c in cols)]
                conn.execute(f"UPDATE guild_configs SET {sets} WHERE guild_id=?", (*vals, str(guild_id)))
            return _config(_query_one(conn, "SELECT * FROM guild_configs WHERE guild_id=?", (str(guild_id),)))
    return await asyncio.to_thread(_work)

# ---------- SEASONS ----------
async def db_season_current(state: AppState, guild_id) -> Optional[Season]:
    def _work():
        with _read(state) as conn:
            row = _query_one(conn, "SELECT * FROM seasons WHERE guild_id=? AND end_ts IS NULL", (str(guild_id),))
        return _season(row) if row else None
    return await asyncio.to_thread(_work)

async def db_season_by_name(state: AppState, guild_id, name: str) -> Optional[Season]:
    def _work():
        with _read(state) as conn:
            row = _query_one(conn, "SELECT * FROM seasons WHERE guild_id=? AND name=?", (str(guild_id), name))
        return _season(row) if row else None
    return await asyncio.to_thread(_work)

async def db_season_list(state: AppState, guild_id) -> List[Season]:
    def _work():
        with _read(state) as conn:
            rows = _query_all(conn,
                "SELECT * FROM seasons WHERE guild_id=? ORDER BY start_ts DESC, id DESC", (str(guild_id),))
        return [_season(r) for r in rows]
    return await asyncio.to_thread(_work)

async def db_season_start(state: AppState, guild_id, name: str) -> Season:
    now = time.time()
    gid = str(guild_id)

    def _work():
        with _write(state) as conn:
            if _query_one(conn, "SELECT id FROM seasons WHERE guild_id=? AND end_ts IS NULL", (gid,)):
                raise SeasonAlreadyOpen()
            if _query_one(conn, "SELECT id FROM seasons WHERE guild_id=? AND name=?", (gid, name)):
                raise NameTaken()
            cur = conn.execute("INSERT INTO seasons (guild_id, name, start_ts) VALUES (?,?,?)", (gid, name, now))
            return Season(id=int(cur.lastrowid), guild_id=gid, name=name, start_ts=now)
    return await asyncio.to_thread(_work)

async def db_season_end(state: AppState, guild_id, season_id: int) -> Season:
    now = time.time()

    def _work():
        with _write(state) as conn:
            cur = conn.execute(
                "UPDATE seasons SET end_ts=? WHERE id=? AND guild_id=? AND end_ts IS NULL",
                (now, int(season_id), str(guild_id)))
            if cur.rowcount == 0:
                raise NoOpenSeason()
            return _season(_query_one(conn, "SELECT * FROM seasons WHERE id=?", (int(season_id),)))
    return await asyncio.to_thread(_work)

async def db_season_reopen(state: AppState, guild_id, season_id: int) -> Season:
    gid = str(guild_id)

    def _work():
        with _write(state) as conn:
            target = _query_one(conn, "SELECT * FROM seasons WHERE id=? AND guild_id=?", (int(season_id), gid))
            if not target:
                raise SeasonNotFound()
            if target["end_ts"] is None:
                raise SeasonNotClosed()
            if _query_one(conn, "SELECT id FROM seasons WHERE guild_id=? AND end_ts IS NULL", (gid,)):
                raise SeasonAlreadyOpen()
            conn.execute("UPDATE seasons SET end_ts=NULL WHERE id=?", (int(season_id),))
            return _season(_query_one(conn, "SELECT * FROM seasons WHERE id=?", (int(season_id),)))
    return await asyncio.to_thread(_work)

async def db_season_match_count(state: AppState, season_id: int) -> int:
    def _work():
        with _read(state) as conn:
            row = conn.execute("SELECT COUNT(*) FROM matches WHERE season_id=?", (int(season_id),)).fetchone()
        return int(row[0]) if row else 0
    return await asyncio.to_thread(_work)

# ---------- PROFILES ----------
def _profile_ensure(conn: sqlite3.Connection, guild_id: str, user_id: str) -> Profile:
    conn.execute("INSERT OR IGNORE INTO profiles (guild_id, user_id) VALUES (?,?)", (guild_id, user_id))
    return _profile(_query_one(conn,
        "SELECT * FROM profiles WHERE guild_id=? AND user_id=?", (guild_id, user_id)))

async def db_profiles_fetch(state: AppState, guild_id, user_ids: Iterable) -> List[Profile]:
    """Load (creating as needed) one profile per user id, in the given order."""
    uids = [str(u) for u in user_ids]

    def _work():
        with _write(state) as conn:
            return [_profile_ensure(conn, str(guild_id), uid) for uid in uids]
    return await asyncio.to_thread(_work)

async def db_profile_get(state: AppState, guild_id, user_id) -> Profile:
    profiles = await db_profiles_fetch(state, guild_id, [user_id])
    return profiles[0]

async def db_profile_set_deck(state: AppState, guild_id, user_id, deck_id: Optional[int]) -> Profile:
    def _work():
        with _write(state) as conn:
            _profile_ensure(conn, str(guild_id), str(user_id))
            conn.execute("UPDATE profiles SET current_deck_id=? WHERE guild_id=? AND user_id=?",
                         (deck_id, str(guild_id), str(user_id)))
            return _profile_ensure(conn, str(guild_id), str(user_id))
    return await asyncio.to_thread(_work)

async def db_profiles_ranked(state: AppState, guild_id) -> List[Profile]:
    def _work():
        with _read(state) as conn:
            rows = _query_all(conn,
                "SELECT * FROM profiles WHERE guild_id=? ORDER BY points DESC, user_id ASC", (str(guild_id),))
        return [_profile(r) for r in rows]
    return await asyncio.to_thread(_work)

# ---------- DECKS ----------
async def db_deck_create(state: AppState, guild_id, user_id, name: str, deck_list: Optional[str], limit: int) -> Deck:
    gid, uid = str(guild_id), str(user_id)

    def _work():
        with _write(state) as conn:
            count = conn.execute("SELECT COUNT(*) FROM decks WHERE guild_id=? AND user_id=?", (gid, uid)).fetchone()[0]
            if int(count) >= int(limit):
                raise DeckLimitReached()
            if _query_one(conn, "SELECT id FROM decks WHERE guild_id=? AND user_id=? AND name=?", (gid, uid, name)):
                raise DeckNameTaken()
            cur = conn.execute("INSERT INTO decks (guild_id, user_id, name, deck_list) VALUES (?,?,?,?)",
                               (gid, uid, name, deck_list))
            return Deck(id=int(cur.lastrowid), guild_id=gid, user_id=uid, name=name, deck_list=deck_list)
    return await asyncio.to_thread(_work)

async def db_deck_by_name(state: AppState, guild_id, user_id, name: str) -> Optional[Deck]:
    def _work():
        with _read(state) as conn:
            row = _query_one(conn, "SELECT * FROM decks WHERE guild_id=? AND user_id=? AND name=?",
                             (str(guild_id), str(user_id), name))
        return _deck(row) if row else None
    return await asyncio.to_thread(_work)

async def db_decks_by_ids(state: AppState, deck_ids: Iterable[Optional[int]]) -> Dict[int, Deck]:
    ids = sorted({int(d) for d in deck_ids if d is not None})
    if not ids:
        return {}
    placeholders = ",".join("?" * len(ids))

    def _work():
        with _read(state) as conn:
            rows = _query_all(conn, f"SELECT * FROM decks WHERE id IN ({placeholders})", ids)
        return {int(r["id"]): _deck(r) for r in rows}
    return await asyncio.to_thread(_work)

async def db_deck_list(state: AppState, guild_id, user_id) -> List[Deck]:
    def _work():
        with _read(state) as conn:
            rows = _query_all(conn, "SELECT * FROM decks WHERE guild_id=? AND user_id=? ORDER BY name COLLATE NOCASE",
                              (str(guild_id), str(user_id)))
        return [_deck(r) for r in rows]
    return await asyncio.to_thread(_work)

async def db_deck_rename(state: AppState, deck_id: int, new_name: str) -> Deck:
    def _work():
        with _write(state) as conn:
            row = _query_one(conn, "SELECT * FROM decks WHERE id=?", (int(deck_id),))
            if not row:
                raise DeckNotFound()
            clash = _query_one(conn, "SELECT id FROM decks WHERE guild_id=? AND user_id=? AND name=? AND id<>?",
                               (row["guild_id"], row["user_id"], new_name, int(deck_id)))
            if clash:
                raise DeckNameTaken()
            conn.execute("UPDATE decks SET name=? WHERE id=?", (new_name, int(deck_id)))
            row["name"] = new_name
            return _deck(row)
    return await asyncio.to_thread(_work)

async def db_deck_set_list(state: AppState, deck_id: int, deck_list: Optional[str]) -> Deck:
    def _work():
        with _write(state) as conn:
            cur = conn.execute("UPDATE decks SET deck_list=? WHERE id=?", (deck_list, int(deck_id)))
            if cur.rowcount == 0:
                raise DeckNotFound()
            return _deck(_query_one(conn, "SELECT * FROM decks WHERE id=?", (int(deck_id),)))
    return await asyncio.to_thread(_work)

async def db_deck_delete(state: AppState, deck_id: int) -> bool:
    """Delete a deck and clear it from any profile that had it selected."""
    def _work():
        with _write(state) as conn:
            cur = conn.execute("DELETE FROM decks WHERE id=?", (int(deck_id),))
            conn.execute("UPDATE profiles SET current_deck_id=NULL WHERE current_deck_id=?", (int(deck_id),))
            return cur.rowcount > 0
    return await asyncio.to_thread(_work)

# ---------- MATCHES ----------
async def db_match_insert(state: AppState, match: Match) -> None:
    def _work():
        with _write(state) as conn:
            conn.execute(
                """INSERT INTO matches
                     (id, guild_id, channel_id, message_id, season_id, winner_user_id,
                      dispute_thread_id, confirmed_at, created_ts)
                   VALUES (?,?,?,?,?,?,?,?,?)""",
                (match.id, match.guild_id, match.channel_id, match.message_id, int(match.season_id),
                 match.winner_user_id, match.dispute_thread_id, match.confirmed_at, match.created_ts),
            )
            conn.executemany(
                "INSERT INTO match_players (match_id, seat, user_id, deck_id, confirmed) VALUES (?,?,?,?,?)",
                [(match.id, seat, p.user_id, p.deck_id, int(p.confirmed)) for seat, p in enumerate(match.players)],
            )
    await asyncio.to_thread(_work)

async def db_match_get(state: AppState, match_id: str) -> Optional[Match]:
    def _work():
        with _read(state) as conn:
            return _load_match(conn, str(match_id))
    return await asyncio.to_thread(_work)

async def db_match_by_message(state: AppState, message_id) -> Optional[Match]:
    def _work():
        with _read(state) as conn:
            row = _query_one(conn, "SELECT id FROM matches WHERE message_id=?", (str(message_id),))
            return _load_match(conn, row["id"]) if row else None
    return await asyncio.to_thread(_work)

_PENDING_SQL = """
    SELECT m.id FROM matches m
     WHERE m.guild_id=? AND m.season_id=?
       AND EXISTS (SELECT 1 FROM match_players p WHERE p.match_id=m.id AND p.confirmed=0)
"""

async def db_matches_pending(state: AppState, guild_id, season_id: int, *, disputed_only: bool = False) -> List[Match]:
    """Not-fully-confirmed matches in a season, oldest first."""
    sql = _PENDING_SQL
    if disputed_only:
        sql += " AND m.dispute_thread_id IS NOT NULL"
    sql += " ORDER BY m.rowid ASC"

    def _work():
        with _read(state) as conn:
            ids = [r[0] for r in conn.execute(sql, (str(guild_id), int(season_id))).fetchall()]
            return _load_matches(conn, ids)
    return await asyncio.to_thread(_work)

async def db_matches_for_player(
    state: AppState,
    guild_id,
    user_id,
    *,
    season_id: Optional[int] = None,
    deck_id: Optional[int] = None,
    limit: Optional[int] = None,
) -> List[Match]:
    """Matches a user played in, newest first."""
    sql = """SELECT m.id FROM matches m
               JOIN match_players p ON p.match_id = m.id
              WHERE m.guild_id=? AND p.user_id=?"""
    params: list = [str(guild_id), str(user_id)]
    if season_id is not None:
        sql += " AND m.season_id=?"
        params.append(int(season_id))
    if deck_id is not None:
        sql += " AND p.deck_id=?"
        params.append(int(deck_id))
    sql += " ORDER BY m.rowid DESC"
    if limit:
        sql += f" LIMIT {int(limit)}"

    def _work():
        with _read(state) as conn:
            ids = [r[0] for r in conn.execute(sql, params).fetchall()]
            return _load_matches(conn, ids)
    return await asyncio.to_thread(_work)

def _settle_in_tx(conn: sqlite3.Connection, match: Match) -> Dict[str, int]:
    config = _config_ensure(conn, match.guild_id)
    deltas = settlement_deltas(match, config)
    for uid, delta in deltas.items():
        _profile_ensure(conn, match.guild_id, uid)
        conn.execute("UPDATE profiles SET points = points + ? WHERE guild_id=? AND user_id=?",
                     (int(delta), match.guild_id, uid))
    return deltas

def _finalize_in_tx(conn: sqlite3.Connection, match_id: str, now: float) -> bool:
    """Set confirmed_at iff every player is confirmed and it was not set yet.

    Returns True only for the caller that won the transition; that caller
    settles points in the same transaction.
    """
    cur = conn.execute(
        """UPDATE matches SET confirmed_at=?
            WHERE id=? AND confirmed_at IS NULL
              AND NOT EXISTS (SELECT 1 FROM match_players WHERE match_id=? AND confirmed=0)""",
        (now, match_id, match_id),
    )
    if cur.rowcount != 1:
        return False
    match = _load_match(conn, match_id)
    deltas = _settle_in_tx(conn, match)
    log.info("[match] %s finalized, settled %s", match_id, deltas)
    return True

async def db_match_confirm_player(state: AppState, match_id: str, user_id) -> Tuple[Match, bool, bool]:
    """Confirm one player. Returns (match_after, changed, finalized_now)."""
    now = time.time()
    uid = str(user_id)

    def _work():
        with _write(state) as conn:
            match = _load_match(conn, match_id)
            if not match:
                raise MatchNotFound()
            if match.player(uid) is None:
                raise NotAParticipant()
            cur = conn.execute("UPDATE match_players SET confirmed=1 WHERE match_id=? AND user_id=? AND confirmed=0",
                               (match_id, uid))
            changed = cur.rowcount == 1
            finalized = _finalize_in_tx(conn, match_id, now) if changed else False
            return _load_match(conn, match_id), changed, finalized
    return await asyncio.to_thread(_work)

def _accept_in_tx(conn: sqlite3.Connection, match_id: str, now: float) -> bool:
    cur = conn.execute("UPDATE match_players SET confirmed=1 WHERE match_id=? AND confirmed=0", (match_id,))
    if cur.rowcount == 0:
        return False
    _finalize_in_tx(conn, match_id, now)
    return True

async def db_match_accept(state: AppState, guild_id, match_id: str) -> Match:
    now = time.time()

    def _work():
        with _write(state) as conn:
            match = _load_match(conn, match_id)
            if not match:
                raise MatchNotFound()
            if match.guild_id != str(guild_id):
                raise CrossGuildMatch()
            if not _accept_in_tx(conn, match_id, now):
                raise AlreadyFullyConfirmed()
            return _load_match(conn, match_id)
    return await asyncio.to_thread(_work)

async def db_match_accept_all(state: AppState, guild_id, season_id: int) -> int:
    """Force-confirm every pending match of a season, oldest first. Returns how many changed."""
    now = time.time()
    sql = _PENDING_SQL + " ORDER BY m.rowid ASC"

    def _work():
        with _write(state) as conn:
            ids = [r[0] for r in conn.execute(sql, (str(guild_id), int(season_id))).fetchall()]
            return sum(1 for mid in ids if _accept_in_tx(conn, mid, now))
    return await asyncio.to_thread(_work)

async def db_match_set_dispute_thread(state: AppState, match_id: str, thread_id) -> Match:
    def _work():
        with _write(state) as conn:
            cur = conn.execute("UPDATE matches SET dispute_thread_id=? WHERE id=?", (str(thread_id), match_id))
            if cur.rowcount == 0:
                raise MatchNotFound()
            return _load_match(conn, match_id)
    return await asyncio.to_thread(_work)

async def db_match_cancel(state: AppState, match_id: str, user_id) -> Match:
    """Delete an unfinalized match on behalf of one of its players."""
    def _work():
        with _write(state) as conn:
            match = _load_match(conn, match_id)
            if not match:
                raise MatchNotFound()
            if match.player(user_id) is None:
                raise NotAParticipant()
            if match.finalized:
                raise AlreadyFinalized()
            conn.execute("DELETE FROM matches WHERE id=?", (match_id,))
            return match
    return await asyncio.to_thread(_work)

async def db_match_delete(state: AppState, guild_id, match_id: str) -> Match:
    def _work():
        with _write(state) as conn:
            match = _load_match(conn, match_id)
            if not match:
                raise MatchNotFound()
            if match.guild_id != str(guild_id):
                raise CrossGuildMatch()
            conn.execute("DELETE FROM matches WHERE id=?", (match_id,))
            return match
    return await asyncio.to_thread(_work)

# ---------- RECORDS ----------
_RECORD_SQL = """
    SELECT p.user_id AS user_id, p.deck_id AS deck_id,
           SUM(CASE WHEN m.winner_user_id = p.user_id THEN 1 ELSE 0 END) AS wins,
           SUM(CASE WHEN m.winner_user_id IS NOT NULL AND m.winner_user_id <> p.user_id THEN 1 ELSE 0 END) AS losses,
           SUM(CASE WHEN m.winner_user_id IS NULL THEN 1 ELSE 0 END) AS draws,
           COUNT(*) AS games
      FROM match_players p
      JOIN matches m ON m.id = p.match_id
     WHERE m.guild_id=? AND m.confirmed_at IS NOT NULL
"""

def _record(row: dict) -> dict:
    return {k: int(row.get(k) or 0) for k in ("wins", "losses", "draws", "games")}

async def db_player_record(state: AppState, guild_id, user_id, season_id: Optional[int] = None) -> dict:
    sql = _RECORD_SQL + " AND p.user_id=?"
    params: list = [str(guild_id), str(user_id)]
    if season_id is not None:
        sql += " AND m.season_id=?"
        params.append(int(season_id))

    def _work():
        with _read(state) as conn:
            row = _query_one(conn, sql, params)
        return _record(row or {})
    return await asyncio.to_thread(_work)

async def db_season_games_by_player(state: AppState, guild_id, season_id: int) -> Dict[str, int]:
    sql = _RECORD_SQL + " AND m.season_id=? GROUP BY p.user_id"

    def _work():
        with _read(state) as conn:
            rows = _query_all(conn, sql, (str(guild_id), int(season_id)))
        return {r["user_id"]: int(r["games"]) for r in rows}
    return await asyncio.to_thread(_work)

async def db_deck_records(state: AppState, guild_id, user_id) -> Dict[Optional[int], dict]:
    sql = _RECORD_SQL + " AND p.user_id=? GROUP BY p.deck_id"

    def _work():
        with _read(state) as conn:
            rows = _query_all(conn, sql, (str(guild_id), str(user_id)))
        return {r["deck_id"]: _record(r) for r in rows}
    return await asyncio.to_thread(_work)
