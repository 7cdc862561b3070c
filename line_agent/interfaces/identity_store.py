# interfaces/identity_store.py
"""
Identity Resolver
Maps a LINE user id to the school account it was bound to at registration.
Bindings are owned by the web registration flow; this module only reads them.
"""

import asyncio
from typing import Any, Dict, Optional

from loguru import logger

from ..schemas.agent_schemas import UserAccount, UserRole
from .school_store import SchoolStore


def _account_from_user(uid: str, user: Dict[str, Any]) -> Optional[UserAccount]:
    email = user.get("email")
    if not email:
        return None
    role = user.get("role") or "user"
    if role not in {r.value for r in UserRole}:
        role = "user"
    return UserAccount(
        uid=uid,
        display_name=user.get("displayName") or user.get("name") or "ผู้ใช้",
        email=email,
        role=UserRole(role),
        is_photographer=bool(user.get("isPhotographer", False)),
    )


class IdentityResolver:
    """
    Resolves senders in two steps, matching the web application:
    1. ``line_bindings`` document keyed by LINE user id -> ``users`` document
    2. ``users`` document carrying a ``lineUserId`` field
    """

    def __init__(self, store: SchoolStore):
        self.store = store

    def resolve_sync(self, line_user_id: str) -> Optional[UserAccount]:
        binding = self.store.get_line_binding(line_user_id)
        if binding:
            user = self.store.get_user(binding.uid)
            if user:
                account = _account_from_user(binding.uid, user)
                if account:
                    logger.debug(f"[LINE Binding] {line_user_id} -> {account.uid} via line_bindings")
                    return account

        user = self.store.find_user_by_line_id(line_user_id)
        if user:
            account = _account_from_user(str(user["uid"]), user)
            if account:
                logger.debug(f"[LINE Binding] {line_user_id} -> {account.uid} via users.lineUserId")
                return account

        logger.info(f"[LINE Binding] No binding found for: {line_user_id}")
        return None

    async def resolve(self, line_user_id: str) -> Optional[UserAccount]:
        return await asyncio.to_thread(self.resolve_sync, line_user_id)
