"""Identity resolution: map WhatsApp JIDs onto durable user accounts.

WhatsApp addresses one person through several JIDs: the phone-number JID,
device-qualified JIDs (``628xx:12@s.whatsapp.net``) and, more recently,
LIDs (``1234@lid``). The resolver folds all of them into a single User row:
the first JID seen becomes ``primary_id`` and later ones are appended to
``alternate_ids``.
"""

import logging
from typing import Iterable, Optional

from .db import models
from .db.models import Tier, User
from .errors import ResolutionFailure, SeaBotError, UserNotFound

logger = logging.getLogger("seabot.identity")

USER_SERVER = "s.whatsapp.net"

# Push name used by clients that do not expose one
PLACEHOLDER_NAME = "Unknown"


def jid_local(jid: str) -> str:
    """Return the user part of a JID, without device or server suffix."""
    return (jid or "").strip().split("@", 1)[0].split(":", 1)[0]


def normalize_jid(raw: str) -> str:
    """Canonical form used as a user identifier: ``<local>@s.whatsapp.net``."""
    local = jid_local(raw)
    if not local:
        raise ValueError(f"Cannot normalize empty JID: {raw!r}")
    return f"{local}@{USER_SERVER}"


def is_owner_id(jid: str, owner_ids: Iterable[str]) -> bool:
    """Check a JID against configured owner numbers/LIDs in any format."""
    local = jid_local(jid)
    if not local:
        return False
    return any(local == jid_local(owner) for owner in owner_ids if owner)


def _is_meaningful_name(name: str) -> bool:
    return bool(name) and name != PLACEHOLDER_NAME


class IdentityResolver:
    """Resolves senders to users and links identifiers together."""

    def __init__(
        self,
        owner_ids: Iterable[str],
        default_balance: int = 50,
        default_bonus_credits: int = 100,
        daily_limit: int = 30,
        name_merge: bool = True,
    ):
        self.owner_ids = list(owner_ids)
        self.default_balance = default_balance
        self.default_bonus_credits = default_bonus_credits
        self.daily_limit = daily_limit
        self.name_merge = name_merge

    @classmethod
    def from_settings(cls, settings) -> "IdentityResolver":
        return cls(
            owner_ids=settings.owner_ids,
            default_balance=settings.default_balance,
            default_bonus_credits=settings.default_bonus_credits,
            daily_limit=settings.daily_limit,
            name_merge=settings.identity_name_merge,
        )

    def is_owner(self, user: User) -> bool:
        return any(is_owner_id(jid, self.owner_ids) for jid in user.identifiers())

    async def resolve(self, transport_id: str, observed_name: str = "") -> User:
        """Return the user behind `transport_id`, creating or updating it as needed.

        Raises:
            ResolutionFailure: the store could not be read or written.
        """
        normalized = normalize_jid(transport_id)
        name = (observed_name or "").strip()

        try:
            user = await models.get_user_by_primary_id(normalized)
            if user is None:
                user = await models.get_user_by_alternate_id(normalized)
            if user is None and self.name_merge and _is_meaningful_name(name):
                user = await models.get_user_by_display_name(name)
                if user is not None and (user.is_unlimited or self.is_owner(user)):
                    # Privileged accounts are only reachable through an explicit link
                    logger.warning(f"Not linking {normalized} to privileged user '{name}' ({user.primary_id}) by display name")
                    user = None
                elif user is not None:
                    logger.info(f"Linking {normalized} to existing user '{name}' ({user.primary_id}) by display name")
            if user is None:
                return await self._create(normalized, name)

            if _is_meaningful_name(name) and user.display_name != name:
                user = await models.update_user(user.id, display_name=name) or user

            if normalized != user.primary_id and normalized not in user.alternate_ids:
                if await models.add_alternate_id(user.id, normalized):
                    user.alternate_ids.append(normalized)
                    logger.info(f"Added alternate JID {normalized} for user {user.primary_id}")

            return await self._promote_owner(user)
        except SeaBotError:
            raise
        except Exception as e:
            raise ResolutionFailure(f"Could not resolve {normalized}: {e}") from e

    async def _create(self, normalized: str, name: str) -> User:
        tier = Tier.OWNER if is_owner_id(normalized, self.owner_ids) else Tier.STANDARD
        user = await models.create_user(
            primary_id=normalized,
            display_name=name or PLACEHOLDER_NAME,
            tier=tier,
            balance=self.default_balance,
            bonus_credits=self.default_bonus_credits,
            daily_limit=self.daily_limit,
        )
        logger.info(f"New user registered: {user.display_name} ({normalized}) - tier: {user.tier.value}")
        return user

    async def _promote_owner(self, user: User) -> User:
        if user.tier is Tier.OWNER or not self.is_owner(user):
            return user
        logger.info(f"Promoting {user.primary_id} to owner (matches configured owner id)")
        return await models.update_user(user.id, tier=Tier.OWNER) or user

    async def link(self, primary_id: str, secondary_id: str) -> User:
        """Explicitly attach `secondary_id` to the user owning `primary_id`.

        If the secondary identifier already has its own account, that account
        is merged into the primary one and deleted.

        Raises:
            UserNotFound: no user owns `primary_id`.
            ValueError: either identifier is empty.
        """
        primary_jid = normalize_jid(primary_id)
        secondary_jid = normalize_jid(secondary_id)

        primary = await models.find_user(primary_jid)
        if primary is None:
            raise UserNotFound(f"Primary user not found: {primary_jid}")

        secondary = await models.find_user(secondary_jid)
        if secondary is not None and secondary.id != primary.id:
            logger.info(f"Merging user {secondary.primary_id} into {primary.primary_id}")
            primary = await models.merge_users(primary.id, secondary.id) or primary

        if secondary_jid != primary.primary_id and secondary_jid not in primary.alternate_ids:
            await models.add_alternate_id(primary.id, secondary_jid)

        linked: Optional[User] = await models.get_user(primary.id)
        linked = linked or primary
        logger.info(f"Linked {secondary_jid} to {linked.display_name} ({linked.primary_id})")
        return await self._promote_owner(linked)
