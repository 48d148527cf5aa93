import asyncio
import itertools
import logging
from typing import Any, Dict, List, Optional
import httpx
from ..config import settings
from ..utils.cache import async_cache, craft_type_cache, key_fingerprint

AUTH_MESSAGE = "Authentication required. Please log in again."


class StoreError(Exception):
    """The storage collaborator returned something unusable"""


class StoreAuthenticationError(StoreError):
    pass


class StoreUnavailableError(StoreError):
    pass


class StaleResponseError(StoreError):
    pass


class RequestSequencer:
    """Hands out increasing tokens per key so late responses can be recognized"""

    def __init__(self):
        self._counter = itertools.count(1)
        self._latest: Dict[str, int] = {}

    def issue(self, key: str) -> int:
        token = next(self._counter)
        self._latest[key] = token
        return token

    def accept(self, key: str, token: int) -> bool:
        return self._latest.get(key) == token

    def ensure_current(self, key: str, token: int) -> None:
        if not self.accept(key, token):
            logging.info(f"Discarding stale response for {key} (token {token})")
            raise StaleResponseError(f"A newer request for {key} superseded this one")

    def release(self, key: str, token: int) -> None:
        """Forget a finished request unless a newer one is still in flight"""
        if self.accept(key, token):
            del self._latest[key]

    def __len__(self) -> int:
        return len(self._latest)


class StoreClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: str = '',
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sequencer: Optional[RequestSequencer] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None
    ):
        self.base_url = (base_url or settings.STORE_URL).rstrip('/')
        self.api_key = api_key
        self.transport = transport
        self.sequencer = sequencer or RequestSequencer()
        self.max_attempts = max_attempts or settings.FETCH_MAX_ATTEMPTS
        self.backoff_seconds = settings.FETCH_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        self.cache_namespace = f"{self.base_url}:{key_fingerprint(api_key)}"

    def _headers(self) -> Dict[str, str]:
        return {
            "key-authorization": self.api_key,
            "Content-Type": "application/json"
        }

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict]:
        """GET a list resource, retrying transient failures with linear backoff"""
        url = f"{self.base_url}/{path.lstrip('/')}"
        last_error = ''

        for attempt in range(1, self.max_attempts + 1):
            try:
                async with httpx.AsyncClient(
                    transport=self.transport,
                    timeout=settings.STORE_TIMEOUT_SECONDS
                ) as client:
                    response = await client.get(url, headers=self._headers(), params=params)

                if response.status_code in (401, 403):
                    logging.error(f"Store rejected credentials for {path}: {response.status_code}")
                    raise StoreAuthenticationError(AUTH_MESSAGE)

                response.raise_for_status()
                data = response.json()
                if isinstance(data, dict):
                    if data.get("errors"):
                        messages = [str(error.get('message', 'Unknown error')) for error in data["errors"]]
                        raise StoreError(f"Store errors: {', '.join(messages)}")
                    data = data.get("data")
                if data is None:
                    logging.warning(f"No data found in response from {path}")
                    return []
                if not isinstance(data, list):
                    raise StoreError(f"Expected a list from {path}")
                return data

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status < 500:
                    logging.error(f"HTTP error: {status} - {e.response.text}")
                    raise StoreError(f"HTTP error {status}")
                last_error = f"HTTP error {status}"
            except httpx.TransportError as e:
                last_error = str(e) or type(e).__name__

            logging.warning(f"Store request {path} failed (attempt {attempt}/{self.max_attempts}): {last_error}")
            if attempt < self.max_attempts:
                await asyncio.sleep(attempt * self.backoff_seconds)

        raise StoreUnavailableError(f"Store unavailable after {self.max_attempts} attempts: {last_error}")

    async def fetch_labor_actuals(self, project_id: str) -> List[Dict]:
        return await self._get(f"projects/{project_id}/labor-actuals")

    async def fetch_headcount_forecasts(self, project_id: str) -> List[Dict]:
        return await self._get(f"projects/{project_id}/headcount-forecasts")

    @async_cache(craft_type_cache)
    async def fetch_craft_types(self) -> List[Dict]:
        return await self._get("craft-types")

    async def fetch_purchase_orders(self, project_id: str) -> List[Dict]:
        return await self._get(f"projects/{project_id}/purchase-orders")

    def sequence_key(self, project_id: str) -> str:
        """Requests only supersede earlier ones from the same caller"""
        return f"{self.cache_namespace}:{project_id}"

    async def fetch_project_inputs(self, project_id: str) -> Dict[str, List[Dict]]:
        """Actuals, forecasts and craft types for one project, fetched together.

        Raises StaleResponseError when another fetch for the same project was
        issued by the same caller while this one was in flight.
        """
        key = self.sequence_key(project_id)
        token = self.sequencer.issue(key)
        try:
            actuals, forecasts, craft_types = await asyncio.gather(
                self.fetch_labor_actuals(project_id),
                self.fetch_headcount_forecasts(project_id),
                self.fetch_craft_types()
            )
            self.sequencer.ensure_current(key, token)
        finally:
            self.sequencer.release(key, token)
        logging.info(
            f"Fetched project {project_id}: {len(actuals)} actuals, {len(forecasts)} forecasts, "
            f"{len(craft_types)} craft types"
        )
        return {
            'actuals': actuals,
            'forecasts': forecasts,
            'craft_types': craft_types,
        }
