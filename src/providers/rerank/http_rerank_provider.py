"""HTTP rerank provider adapter.

Calls a Cohere/Jina-compatible ``POST {base_url}/rerank`` endpoint:

    request:  {"model", "query", "documents": [...], "top_n"}
    response: {"results": [{"index": int, "relevance_score": float}, ...]}

The shared ``httpx.AsyncClient`` is owned by the application and injected,
so connection pooling is shared with other HTTP collaborators.
"""

from __future__ import annotations

import httpx
import structlog

from src.interfaces.rerank_provider import IRerankProvider
from src.models.retrieval import RerankItem
from src.models.vectorization import AIModel
from src.utils.errors import RerankError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_TIMEOUT = 30.0


class HTTPRerankProvider(IRerankProvider):
    """Rerank provider speaking the common ``/rerank`` JSON protocol."""

    def __init__(self, model: AIModel, http_client: httpx.AsyncClient) -> None:
        self._model = model
        self._http = http_client

    async def rerank(
        self,
        query: str,
        documents: list[str],
        top_n: int,
    ) -> list[RerankItem]:
        if not documents:
            return []
        if not self._model.base_url:
            raise RerankError(
                message=f"Rerank model {self._model.id} has no base_url",
                provider_name=self.get_provider_name(),
            )

        headers = {"Content-Type": "application/json"}
        if self._model.api_key:
            headers["Authorization"] = f"Bearer {self._model.api_key}"
        payload = {
            "model": self._model.model,
            "query": query,
            "documents": documents,
            "top_n": top_n,
        }

        try:
            response = await self._http.post(
                f"{self._model.base_url.rstrip('/')}/rerank",
                json=payload,
                headers=headers,
                timeout=_DEFAULT_TIMEOUT,
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise RerankError(
                message=f"Rerank HTTP {exc.response.status_code}: {exc.response.text[:200]}",
                provider_name=self.get_provider_name(),
            ) from exc
        except (httpx.RequestError, ValueError) as exc:
            raise RerankError(
                message=f"Rerank request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        results = body.get("results") if isinstance(body, dict) else None
        if not isinstance(results, list):
            raise RerankError(
                message="Rerank response has no results list",
                provider_name=self.get_provider_name(),
            )

        try:
            items = [
                RerankItem(index=r["index"], relevance_score=r["relevance_score"])
                for r in results
                if 0 <= r["index"] < len(documents)
            ]
        except (KeyError, TypeError, ValueError) as exc:
            raise RerankError(
                message=f"Malformed rerank result: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info(
            "rerank_request_completed",
            model=self._model.model,
            documents=len(documents),
            results=len(items),
        )
        return items

    def get_provider_name(self) -> str:
        return "http_rerank"
