"""Record types and query helpers for SeaBot tables."""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from .connection import get_connection, get_transaction


class Tier(str, Enum):
    OWNER = "owner"
    PREMIUM = "premium"
    STANDARD = "standard"


UNLIMITED_TIERS = (Tier.OWNER, Tier.PREMIUM)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class User:
    """One human identity, possibly reachable through several JIDs."""
    id: int
    primary_id: str
    alternate_ids: list[str] = field(default_factory=list)
    display_name: str = "Unknown"
    tier: Tier = Tier.STANDARD
    balance: int = 0
    bonus_credits: int = 0
    daily_limit: int = 0
    limit_used: int = 0
    last_limit_reset: datetime = field(default_factory=_utcnow)
    last_command_at: Optional[datetime] = None
    member_since: datetime = field(default_factory=_utcnow)

    @property
    def is_unlimited(self) -> bool:
        return self.tier in UNLIMITED_TIERS

    def identifiers(self) -> list[str]:
        return [self.primary_id, *self.alternate_ids]

    def to_dict(self) -> dict:
        data = asdict(self)
        data["tier"] = self.tier.value
        for key in ("last_limit_reset", "last_command_at", "member_since"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data


@dataclass
class CommandDescriptor:
    """Persisted, admin-editable settings for one bot command."""
    name: str
    description: str = ""
    category: str = "general"
    usage: str = ""
    cooldown_seconds: int = 2
    owner_only: bool = False
    is_active: bool = True
    usage_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


_USER_COLUMNS = """
    id, primary_id, alternate_ids, display_name, tier, balance, bonus_credits,
    daily_limit, limit_used, last_limit_reset, last_command_at, member_since
"""

_COMMAND_COLUMNS = """
    name, description, category, usage, cooldown_seconds, owner_only, is_active, usage_count
"""

# Columns the dashboard and the core may write through update_user()
USER_UPDATABLE_FIELDS = {
    "display_name", "tier", "balance", "bonus_credits", "daily_limit",
    "limit_used", "last_limit_reset", "last_command_at",
}

COMMAND_UPDATABLE_FIELDS = {
    "description", "category", "usage", "cooldown_seconds", "owner_only", "is_active",
}


def _row_to_user(row) -> Optional[User]:
    if row is None:
        return None
    data = dict(row)
    data["alternate_ids"] = list(data.get("alternate_ids") or [])
    data["tier"] = Tier(data["tier"])
    return User(**data)


def _row_to_command(row) -> Optional[CommandDescriptor]:
    return CommandDescriptor(**dict(row)) if row else None


def _affected(status: str) -> int:
    """Parse the row count out of an asyncpg status string ('UPDATE 3')."""
    try:
        return int(status.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0


# ============================================================
# USERS
# ============================================================

async def get_user(user_id: int) -> Optional[User]:
    """Find a user by surrogate key."""
    async with get_connection() as conn:
        row = await conn.fetchrow(f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1", user_id)
        return _row_to_user(row)


async def get_user_by_primary_id(primary_id: str) -> Optional[User]:
    async with get_connection() as conn:
        row = await conn.fetchrow(f"SELECT {_USER_COLUMNS} FROM users WHERE primary_id = $1", primary_id)
        return _row_to_user(row)


async def get_user_by_alternate_id(identifier: str) -> Optional[User]:
    async with get_connection() as conn:
        row = await conn.fetchrow(
            f"SELECT {_USER_COLUMNS} FROM users WHERE $1 = ANY(alternate_ids) LIMIT 1",
            identifier,
        )
        return _row_to_user(row)


async def get_user_by_display_name(display_name: str) -> Optional[User]:
    """Oldest user whose display name matches exactly (case-sensitive)."""
    async with get_connection() as conn:
        row = await conn.fetchrow(
            f"SELECT {_USER_COLUMNS} FROM users WHERE display_name = $1 ORDER BY id LIMIT 1",
            display_name,
        )
        return _row_to_user(row)


async def find_user(identifier: str) -> Optional[User]:
    """Find the user owning an identifier, as primary or alternate."""
    return await get_user_by_primary_id(identifier) or await get_user_by_alternate_id(identifier)


async def create_user(
    primary_id: str,
    display_name: str,
    tier: Tier,
    balance: int,
    bonus_credits: int,
    daily_limit: int,
) -> User:
    """Insert a user. If the primary id already exists, the existing row is returned."""
    async with get_connection() as conn:
        row = await conn.fetchrow(f"""
            INSERT INTO users (primary_id, display_name, tier, balance, bonus_credits, daily_limit)
            VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (primary_id) DO UPDATE SET primary_id = EXCLUDED.primary_id
            RETURNING {_USER_COLUMNS}
        """, primary_id, display_name, tier.value, balance, bonus_credits, daily_limit)
        return _row_to_user(row)


async def update_user(user_id: int, **fields) -> Optional[User]:
    """Update selected user fields. Returns the updated user or None if not found."""
    unknown = set(fields) - USER_UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update user fields: {', '.join(sorted(unknown))}")
    if not fields:
        return await get_user(user_id)

    updates = []
    params = []
    for idx, (name, value) in enumerate(fields.items(), start=1):
        if isinstance(value, Tier):
            value = value.value
        updates.append(f"{name} = ${idx}")
        params.append(value)
    updates.append("updated_at = NOW()")
    params.append(user_id)

    async with get_connection() as conn:
        row = await conn.fetchrow(f"""
            UPDATE users SET {', '.join(updates)}
            WHERE id = ${len(params)}
            RETURNING {_USER_COLUMNS}
        """, *params)
        return _row_to_user(row)


async def add_alternate_id(user_id: int, identifier: str) -> bool:
    """Attach an identifier to a user.

    No-op (returns False) if the user already has it or another user owns it.
    """
    async with get_connection() as conn:
        status = await conn.execute("""
            UPDATE users SET alternate_ids = array_append(alternate_ids, $2), updated_at = NOW()
            WHERE id = $1
              AND primary_id <> $2
              AND NOT ($2 = ANY(alternate_ids))
              AND NOT EXISTS (
                  SELECT 1 FROM users o
                  WHERE o.id <> $1 AND (o.primary_id = $2 OR $2 = ANY(o.alternate_ids))
              )
        """, user_id, identifier)
        return _affected(status) == 1


async def merge_users(keep_id: int, drop_id: int) -> Optional[User]:
    """Fold user `drop_id` into `keep_id` and delete it.

    Balances and usage take the larger value; identifiers of the dropped
    user become alternates of the kept one.
    """
    async with get_transaction() as conn:
        drop = await conn.fetchrow(f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1 FOR UPDATE", drop_id)
        if drop is None:
            row = await conn.fetchrow(f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1", keep_id)
            return _row_to_user(row)
        await conn.execute("DELETE FROM users WHERE id = $1", drop_id)
        carried = [drop["primary_id"], *(drop["alternate_ids"] or [])]
        row = await conn.fetchrow(f"""
            UPDATE users SET
                balance = GREATEST(balance, $2),
                bonus_credits = GREATEST(bonus_credits, $3),
                limit_used = GREATEST(limit_used, $4),
                alternate_ids = ARRAY(
                    SELECT DISTINCT unnest(alternate_ids || $5::text[])
                    EXCEPT SELECT primary_id FROM users WHERE id = $1
                ),
                updated_at = NOW()
            WHERE id = $1
            RETURNING {_USER_COLUMNS}
        """, keep_id, drop["balance"], drop["bonus_credits"], drop["limit_used"], carried)
        return _row_to_user(row)


async def increment_limit_used(user_id: int) -> Optional[int]:
    """Atomically add one to limit_used. Returns the new value."""
    async with get_connection() as conn:
        return await conn.fetchval(
            "UPDATE users SET limit_used = limit_used + 1, updated_at = NOW() WHERE id = $1 RETURNING limit_used",
            user_id,
        )


async def reset_standard_limits() -> int:
    """Zero limit_used for every standard-tier user. Returns rows touched."""
    async with get_connection() as conn:
        status = await conn.execute("""
            UPDATE users SET limit_used = 0, last_limit_reset = NOW(), updated_at = NOW()
            WHERE tier = 'standard'
        """)
        return _affected(status)


async def delete_user(user_id: int) -> bool:
    async with get_connection() as conn:
        status = await conn.execute("DELETE FROM users WHERE id = $1", user_id)
        return _affected(status) == 1


async def list_users(limit: int = 50, offset: int = 0, tier: Optional[Tier] = None) -> list[User]:
    """List users, most recently active first."""
    async with get_connection() as conn:
        query = f"SELECT {_USER_COLUMNS} FROM users"
        params: list = []
        if tier is not None:
            params.append(tier.value)
            query += f" WHERE tier = ${len(params)}"
        params.extend([limit, offset])
        query += f" ORDER BY last_command_at DESC NULLS LAST, id LIMIT ${len(params) - 1} OFFSET ${len(params)}"
        rows = await conn.fetch(query, *params)
        return [_row_to_user(row) for row in rows]


async def count_users(tier: Optional[Tier] = None) -> int:
    async with get_connection() as conn:
        if tier is None:
            return await conn.fetchval("SELECT COUNT(*) FROM users")
        return await conn.fetchval("SELECT COUNT(*) FROM users WHERE tier = $1", tier.value)


async def count_users_by_tier() -> dict[str, int]:
    async with get_connection() as conn:
        rows = await conn.fetch("SELECT tier, COUNT(*) AS c FROM users GROUP BY tier")
    counts = {tier.value: 0 for tier in Tier}
    for row in rows:
        counts[row["tier"]] = row["c"]
    return counts


async def count_active_users(since: datetime) -> int:
    async with get_connection() as conn:
        return await conn.fetchval("SELECT COUNT(*) FROM users WHERE last_command_at >= $1", since)


# ============================================================
# COMMANDS
# ============================================================

async def get_commands() -> list[CommandDescriptor]:
    async with get_connection() as conn:
        rows = await conn.fetch(f"SELECT {_COMMAND_COLUMNS} FROM commands ORDER BY category, name")
        return [_row_to_command(row) for row in rows]


async def insert_command_if_missing(descriptor: CommandDescriptor) -> None:
    """Seed a command row. Existing rows (and admin edits) are left alone."""
    async with get_connection() as conn:
        await conn.execute("""
            INSERT INTO commands (name, description, category, usage, cooldown_seconds, owner_only, is_active)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (name) DO NOTHING
        """, descriptor.name, descriptor.description, descriptor.category, descriptor.usage,
            descriptor.cooldown_seconds, descriptor.owner_only, descriptor.is_active)


async def update_command(name: str, **fields) -> Optional[CommandDescriptor]:
    unknown = set(fields) - COMMAND_UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update command fields: {', '.join(sorted(unknown))}")

    async with get_connection() as conn:
        if not fields:
            row = await conn.fetchrow(f"SELECT {_COMMAND_COLUMNS} FROM commands WHERE name = $1", name)
            return _row_to_command(row)

        updates = [f"{key} = ${idx}" for idx, key in enumerate(fields, start=1)]
        updates.append("updated_at = NOW()")
        params = [*fields.values(), name]
        row = await conn.fetchrow(f"""
            UPDATE commands SET {', '.join(updates)}
            WHERE name = ${len(params)}
            RETURNING {_COMMAND_COLUMNS}
        """, *params)
        return _row_to_command(row)


async def increment_command_usage(name: str) -> None:
    async with get_connection() as conn:
        await conn.execute(
            "UPDATE commands SET usage_count = usage_count + 1, updated_at = NOW() WHERE name = $1",
            name,
        )


# ============================================================
# STATS
# ============================================================

async def increment_stat(stat_type: str, amount: int = 1) -> int:
    async with get_connection() as conn:
        return await conn.fetchval("""
            INSERT INTO stats (type, count) VALUES ($1, $2)
            ON CONFLICT (type) DO UPDATE SET count = stats.count + $2, last_updated = NOW()
            RETURNING count
        """, stat_type, amount)


async def get_stat(stat_type: str) -> int:
    async with get_connection() as conn:
        value = await conn.fetchval("SELECT count FROM stats WHERE type = $1", stat_type)
        return value or 0
