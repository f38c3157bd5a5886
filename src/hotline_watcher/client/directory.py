"""
Subscription directory client.

Resolves which subscribers should receive a report by querying the
directory service, either for one subscription by id or for every
subscription whose tag filter matches the report.
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence

import aiohttp
import structlog

from ..errors import DirectoryError, EventDecodeError
from ..events.models import EntityId, Report, Subscription

logger = structlog.get_logger(__name__)


class DirectoryClient:
    """
    Read-only client for the subscription directory API.

    Every lookup failure (network error, timeout, non-2xx status or a
    body that is not a subscription) is raised as ``DirectoryError``.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_url: str,
        api_key: str,
        fallback_tag_id: int = 20,
        timeout_seconds: float = 30.0,
    ):
        """
        Initialize directory client.

        Args:
            session: Shared HTTP session
            api_url: Base URL of the directory API
            api_key: Bearer token for the API
            fallback_tag_id: Tag searched for reports that carry no tags
            timeout_seconds: Per-request timeout
        """
        self._session = session
        self._base_url = api_url.rstrip("/")
        self._api_key = api_key
        self.fallback_tag_id = fallback_tag_id
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def resolve(
        self, report: Report, subscription_id: Optional[EntityId] = None
    ) -> List[Subscription]:
        """
        Resolve the subscribers for a report.

        Args:
            report: Report being delivered
            subscription_id: Restrict delivery to this subscription

        Returns:
            Subscriptions in the order the directory returned them
        """
        if subscription_id is not None:
            return [await self.get_subscription(subscription_id)]

        return await self.search_subscriptions(report.tag_ids or [self.fallback_tag_id])

    async def get_subscription(self, subscription_id: EntityId) -> Subscription:
        """Fetch one subscription by id."""
        data = await self._get(f"/subscription/{subscription_id}")
        return self._to_subscription(data)

    async def search_subscriptions(self, tag_ids: Sequence[EntityId]) -> List[Subscription]:
        """Search subscriptions whose filter matches any of ``tag_ids``."""
        tags = ",".join(str(tag_id) for tag_id in tag_ids)
        data = await self._get("/subscription", params={"tags": tags})

        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise DirectoryError("Subscription search returned no result list")

        subscriptions = [self._to_subscription(item) for item in results]
        logger.debug(
            "Resolved subscriptions",
            tags=tags,
            count=data.get("count", len(subscriptions)),
            returned=len(subscriptions),
        )
        return subscriptions

    async def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        url = f"{self._base_url}{path}"

        try:
            async with self._session.get(
                url, params=params, headers=self._get_headers(), timeout=self._timeout
            ) as resp:
                if resp.status < 200 or resp.status >= 300:
                    raise DirectoryError(
                        f"Directory returned status {resp.status} for {path}",
                        status_code=resp.status,
                    )
                return await resp.json(content_type=None)
        except DirectoryError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning("Directory request failed", path=path, error=str(e))
            raise DirectoryError(f"Directory request to {path} failed: {e}", original_error=e)

    @staticmethod
    def _to_subscription(data: Any) -> Subscription:
        try:
            return Subscription.from_dict(data)
        except (EventDecodeError, TypeError, ValueError) as e:
            raise DirectoryError(f"Malformed subscription: {e}", original_error=e)
