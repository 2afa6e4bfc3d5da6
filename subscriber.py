# subscriber.py
"""Klaviyo mailing-list subscription. Independent of plan generation."""

import logging
from typing import Optional

import requests

from errors import PlanError

logger = logging.getLogger(__name__)

KLAVIYO_API_BASE = "https://a.klaviyo.com/api/v2"


class SubscriptionFailure(PlanError):
    status_code = 502


class ListSubscriber:
    def __init__(self, api_key: Optional[str], list_id: Optional[str], timeout: float = 10.0, session=None):
        self.api_key = api_key
        self.list_id = list_id
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config) -> "ListSubscriber":
        return cls(config.get("KLAVIYO_API_KEY"), config.get("KLAVIYO_LIST_ID"))

    def subscribe(self, email: str):
        if not self.api_key or not self.list_id:
            raise PlanError("Mailing list is not configured")

        url = f"{KLAVIYO_API_BASE}/list/{self.list_id}/subscribe/"
        try:
            response = self.session.post(
                url,
                json={"profiles": [{"email": email, "opt_in_status": "explicit"}]},
                headers={"Authorization": f"Klaviyo-API-Key {self.api_key}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.warning("Mailing list subscription failed for %s: %s", email, e)
            raise SubscriptionFailure("Failed to subscribe to mailing list") from e

        logger.info("Subscribed %s to list %s", email, self.list_id)
        try:
            return response.json()
        except ValueError:
            return {}
