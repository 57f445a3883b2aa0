"""Read and switch the transcription endpoint's worker pool through the RunPod GraphQL API."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
import structlog

from radiocheck.core.config import get_settings
from radiocheck.services.errors import UpstreamError

logger = structlog.get_logger()

ENDPOINTS_QUERY = """
query Endpoints {
  myself {
    endpoints {
      id
      name
      gpuIds
      idleTimeout
      locations
      networkVolumeId
      scalerType
      scalerValue
      templateId
      workersMin
      workersMax
      pods { desiredStatus }
    }
  }
}
"""

SAVE_ENDPOINT_MUTATION = """
mutation SaveEndpoint($input: EndpointInput!) {
  saveEndpoint(input: $input) { id workersMin workersMax }
}
"""

# fields saveEndpoint needs echoed back unchanged
_PRESERVED_FIELDS = (
    "id",
    "name",
    "gpuIds",
    "idleTimeout",
    "locations",
    "networkVolumeId",
    "scalerType",
    "scalerValue",
    "templateId",
)


@dataclass
class EndpointState:
    endpoint_id: str
    name: Optional[str]
    workers_min: int
    workers_max: int
    active_workers: int
    raw: Dict[str, Any]

    @property
    def is_on(self) -> bool:
        return self.workers_max > 0 or self.active_workers > 0


class RunPodControl:
    def __init__(
        self,
        *,
        api_key: str,
        endpoint_id: str,
        graphql_url: str = "https://api.runpod.io/graphql",
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.endpoint_id = endpoint_id
        self._url = graphql_url
        self._api_key = api_key
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(30.0))

    @classmethod
    def from_settings(cls) -> "RunPodControl":
        settings = get_settings()
        if not settings.runpod_api_key or not settings.runpod_endpoint_id:
            raise UpstreamError("Configuración de RunPod incompleta (RUNPOD_API_KEY / RUNPOD_ENDPOINT_ID)")
        return cls(
            api_key=settings.runpod_api_key,
            endpoint_id=settings.runpod_endpoint_id,
            graphql_url=settings.runpod_graphql_url,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = await self._http.post(
                self._url,
                params={"api_key": self._api_key},
                json={"query": query, "variables": variables or {}},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UpstreamError(f"RunPod GraphQL request failed: {exc}") from exc
        body = response.json()
        if body.get("errors"):
            raise UpstreamError(f"RunPod GraphQL error: {body['errors'][0].get('message')}")
        return body.get("data") or {}

    async def get_state(self) -> EndpointState:
        data = await self._graphql(ENDPOINTS_QUERY)
        endpoints = ((data.get("myself") or {}).get("endpoints")) or []
        for endpoint in endpoints:
            if endpoint.get("id") == self.endpoint_id:
                pods = endpoint.get("pods") or []
                return EndpointState(
                    endpoint_id=self.endpoint_id,
                    name=endpoint.get("name"),
                    workers_min=int(endpoint.get("workersMin") or 0),
                    workers_max=int(endpoint.get("workersMax") or 0),
                    active_workers=len(pods),
                    raw=endpoint,
                )
        raise UpstreamError(f"Endpoint {self.endpoint_id} no encontrado en RunPod")

    async def set_enabled(self, enable: bool) -> EndpointState:
        """Scale to one worker (on) or zero (off). No-op if already there."""
        state = await self.get_state()
        target_max = 1 if enable else 0
        if state.workers_max == target_max and state.workers_min == 0:
            return state
        payload = {key: state.raw.get(key) for key in _PRESERVED_FIELDS if state.raw.get(key) is not None}
        payload.update({"workersMin": 0, "workersMax": target_max})
        await self._graphql(SAVE_ENDPOINT_MUTATION, {"input": payload})
        logger.info("runpod.endpoint_toggled", endpoint=self.endpoint_id, workers_max=target_max)
        state.workers_min = 0
        state.workers_max = target_max
        return state
