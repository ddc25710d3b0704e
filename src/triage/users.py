"""
User resolution, auto-provisioning and default account seeding.
"""

import logging
from typing import List

from src.core.constants import (
    ANONYMOUS_USERNAME,
    ANONYMOUS_EMAIL_DOMAIN,
    DEFAULT_STAFF_ACCOUNTS,
)
from src.core.exceptions import InvalidInputError, NotFoundError, UsernameTakenError
from src.triage.models import User, Role, ReputationTier
from src.triage.storage import StoreSession

logger = logging.getLogger(__name__)


def normalize_username(username: str) -> str:
    """Strip whitespace; blank names fall back to the anonymous account."""
    if username is None:
        return ANONYMOUS_USERNAME
    if not isinstance(username, str):
        raise InvalidInputError("Username must be a string")
    return username.strip() or ANONYMOUS_USERNAME


def get_or_create_public_user(store: StoreSession, username: str) -> User:
    """
    Resolve a reporter, provisioning an unknown name as PUBLIC/NEW.

    Auto-provisioned accounts carry no usable credential. When a concurrent
    request provisions the same name first, its account is returned.
    """
    username = normalize_username(username)
    user = store.get_user(username)
    if user is not None:
        return user

    try:
        user = store.add_user(User(
            username=username,
            email=f"{username}@{ANONYMOUS_EMAIL_DOMAIN}",
            role=Role.PUBLIC,
            reputation=ReputationTier.NEW,
        ))
    except UsernameTakenError:
        user = store.get_user(username)
        if user is None:
            raise
        logger.info(f"Public user {username} was provisioned concurrently")
        return user

    logger.info(f"Provisioned public user: {username}")
    return user


def require_user(store: StoreSession, username: str, for_update: bool = False) -> User:
    """Resolve an existing account; actors are never auto-provisioned."""
    if not username or not username.strip():
        raise NotFoundError("User not found: <empty>")
    user = store.get_user(username.strip(), for_update=for_update)
    if user is None:
        raise NotFoundError(f"User not found: {username}")
    return user


def seed_default_users(store: StoreSession) -> List[User]:
    """
    Create the default staff accounts if they are missing.

    Returns:
        Users created by this call
    """
    created = []
    for username, role in DEFAULT_STAFF_ACCOUNTS:
        if store.get_user(username) is not None:
            logger.info(f"{username} user already exists")
            continue
        user = store.add_user(User(
            username=username,
            email=f"{username}@incident.local",
            role=Role[role],
            reputation=ReputationTier.TRUSTED,
        ))
        created.append(user)
        logger.info(f"Created default {role.lower()} user: {username}")
    return created
