"""Registers the EventSub categories the hub relays on a push session."""

from __future__ import annotations

import asyncio
import logging

from ..api.twitch import TwitchAPI
from ..errors.internal import InternalError
from ..errors.relay import SubscriptionError
from ..events.normalizer import SUBSCRIPTION_CATEGORIES, SubscriptionCategory

# 409 means the category is already bound to this session
_ACCEPTED_STATUSES = frozenset({200, 202, 409})


class SubscriptionRegistrar:
    """Issues one subscription request per category after each welcome.

    Attributes:
        broadcaster_id (str): Resolved id of the target account.
        categories (tuple[SubscriptionCategory, ...]): Categories to register.
        active (set[str]): Categories accepted on the current session.
    """

    def __init__(
        self,
        api: TwitchAPI,
        *,
        client_id: str,
        access_token: str,
        broadcaster_id: str,
        categories: tuple[SubscriptionCategory, ...] = SUBSCRIPTION_CATEGORIES,
    ) -> None:
        self._api = api
        self._client_id = client_id
        self._access_token = access_token
        self.broadcaster_id = broadcaster_id
        self.categories = categories
        self.active: set[str] = set()

    async def register_all(self, session_id: str) -> dict[str, bool]:
        """Register every category on ``session_id``.

        Categories are independent: a rejected one is logged and stays
        unavailable until the next restart, the rest still relay.

        Returns:
            dict[str, bool]: Category type -> whether it was accepted.
        """
        logging.info("📝 Subscribing to Twitch events...")
        outcomes = await asyncio.gather(
            *(self._register(category, session_id) for category in self.categories)
        )
        results = {c.type: ok for c, ok in zip(self.categories, outcomes, strict=True)}
        self.active = {name for name, ok in results.items() if ok}
        total = len(results)
        accepted = len(self.active)
        if accepted:
            logging.info(f"✅ Subscribed to {accepted}/{total} event types")
        else:
            logging.warning(
                f"⚠️ No event subscriptions accepted (0/{total}); relaying chat only"
            )
        return results

    def clear(self) -> None:
        self.active.clear()

    async def _register(self, category: SubscriptionCategory, session_id: str) -> bool:
        try:
            data, status = await self._api.create_eventsub_subscription(
                subscription_type=category.type,
                version=category.version,
                condition=category.condition(self.broadcaster_id),
                session_id=session_id,
                access_token=self._access_token,
                client_id=self._client_id,
            )
            if status not in _ACCEPTED_STATUSES:
                reason = data.get("message") or data.get("error") or f"HTTP {status}"
                raise SubscriptionError(
                    f"{category.type}: {reason}",
                    identity="push",
                    operation_type="subscribe",
                )
        except SubscriptionError as e:
            logging.error(f"❌ {str(e)}")
            return False
        except InternalError as e:
            logging.error(f"❌ {category.type}: {str(e)}")
            return False
        logging.info(f"✅ {category.type}")
        return True
