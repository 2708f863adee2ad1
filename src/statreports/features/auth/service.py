"""Business logic for users and report authorization."""
import logging
from typing import Optional

from . import models

logger = logging.getLogger(__name__)


async def get_user_by_username(username: str) -> Optional[models.User]:
    return await models.User.get_or_none(username=username)


async def create_user(user_in: dict, hashed_password_val: str) -> models.User:
    """Creates a new user.

    Args:
        user_in: User fields other than the password (username, email, role,
            report package flags).
        hashed_password_val: The bcrypt hash of the user's password.

    Returns:
        The newly created User object.
    """
    user = await models.User.create(**user_in, hashed_password=hashed_password_val)
    logger.info(f"Created {user.role} {user.username}")
    return user


async def get_authorized_product_ids(user: models.User) -> Optional[set[int]]:
    """Returns the ids of the products a user may report on.

    Admins are unrestricted, signalled by ``None``. Everyone else is limited
    to the products attached to their subscription, which may be empty.
    """
    if user.role == "admin":
        return None
    products = await user.authorized_products.all().values_list("id", flat=True)
    return set(products)
