"""Registry of joined connections."""
import logging
from typing import Dict, List, Optional

from .schemas import User, utcnow

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """Maps connection IDs to the users that joined on them.

    Holds exactly one entry per joined connection. Iteration order is
    insertion order, which keeps ``list()`` deterministic for display
    and tests.
    """

    def __init__(self) -> None:
        # connection_id -> User
        self._users: Dict[str, User] = {}

    def register(self, connection_id: str, name: str, ip: str) -> User:
        """Create and store the user for a connection.

        Registering the same connection again replaces the previous entry
        (last write wins) and resets ``joinedAt``. The entry keeps its original
        position in the listing order.

        Args:
            connection_id: The connection identifier, reused as the user ID.
            name: Resolved display name.
            ip: Origin address captured when the connection opened.

        Returns:
            The stored User.
        """
        previous = self._users.get(connection_id)
        if previous is not None:
            logger.info(
                f"[Presence] Connection {connection_id} re-joined, "
                f"replacing '{previous.name}' with '{name}'"
            )

        user = User(id=connection_id, name=name, ip=ip, joinedAt=utcnow())
        self._users[connection_id] = user
        return user

    def get(self, connection_id: str) -> Optional[User]:
        return self._users.get(connection_id)

    def remove(self, connection_id: str) -> Optional[User]:
        """Remove a connection's user.

        Returns:
            The removed User, or None if the connection never joined.
        """
        return self._users.pop(connection_id, None)

    def list(self) -> List[User]:
        return list(self._users.values())

    def count(self) -> int:
        return len(self._users)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._users
