from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class OrderStore(Protocol):
    """
    A formal contract for the persistence of reconciled orders.

    Keys are ``OrderKey`` tuples (account, ticket-or-position reference).
    """

    async def find_by_key(self, key) -> Optional[Any]:
        ...

    async def insert(self, values: Dict[str, Any]) -> Any:
        """
        Creates a new order row from ``values``.

        Raises:
            OrderKeyConflict: when a row for the same key already exists.
        """
        ...

    async def update_by_key(self, key, patch: Dict[str, Any]) -> Optional[Any]:
        """
        Applies ``patch`` in a single conditional update.

        Returns:
            The refreshed order, or None when no row matched the key.
        """
        ...


@runtime_checkable
class RecipientStore(Protocol):
    """
    A formal contract for looking up who should hear about an order.
    """

    async def find_subscriptions_by_sector(self, sector: str) -> List[Any]:
        ...

    async def find_users_by_subscription(self, subscription_id: int) -> List[Any]:
        ...


@runtime_checkable
class TemplateStore(Protocol):
    """
    A formal contract for localized message templates.
    """

    async def find_template(self, message_type: str, lang: str) -> Optional[str]:
        """
        Returns one template text for (type, lang), picked at random when
        several exist, or None when there is none.
        """
        ...


@runtime_checkable
class Messenger(Protocol):
    """
    A formal contract for the outbound chat transport.
    """

    async def send(self, chat_id: int, text: str) -> None:
        """
        Delivers ``text`` to ``chat_id``.

        Raises:
            MessengerError: carrying the provider's error code and message.
        """
        ...
