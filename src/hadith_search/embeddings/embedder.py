"""
Embedding Client

This module implements the embedding provider adapter. It wraps the OpenAI
embeddings API (or any compatible provider) and is responsible for:

- Sending one request per batch of input texts
- Network and transport error isolation
- Strict response validation (count, order and vector dimension)

The class is stateless and safe to reuse across requests. It performs no
retries and no caching; both belong to the caller.
"""

from __future__ import annotations

from typing import List, Sequence, Optional
import logging
import httpx

from ..core.errors import ProviderError

logger = logging.getLogger("hadith.embedder")


# Upper bound on inputs per request accepted by the OpenAI embeddings API.
MAX_INPUTS_PER_REQUEST = 2048


class Embedder:
    """
    Asynchronous embedding generator for batches of text.

    Every vector returned has exactly ``dim`` components. A provider that
    answers with a different dimension is treated as a failure, since vectors
    from different embedding spaces must never be mixed in one store.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        dim: int,
        base_url: str = "https://api.openai.com/v1/embeddings",
        timeout: float = 60.0,
        max_inputs_per_request: int = MAX_INPUTS_PER_REQUEST,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize an Embedder.

        Parameters
        ----------
        api_key : str
            Provider API key, sent as a bearer token.

        model : str
            Embedding model name. Must match the model used to populate the
            store.

        dim : int
            Expected vector dimension.

        base_url : str
            URL of the embeddings API endpoint.

        timeout : float
            HTTP timeout for each request.

        max_inputs_per_request : int
            Inputs larger than this are split into several requests.

        transport : Optional[httpx.AsyncBaseTransport]
            Custom transport, used by tests to stub the provider.
        """
        self.api_key = api_key
        self.model = model
        self.dim = dim
        self.base_url = base_url
        self.timeout = timeout
        self.max_inputs_per_request = max_inputs_per_request
        self._transport = transport

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Generate embeddings for a sequence of input texts.

        Parameters
        ----------
        texts : Sequence[str]
            Input strings. Output order matches input order.

        Returns
        -------
        List[List[float]]
            One embedding per input text.

        Raises
        ------
        ProviderError
            If any request fails or the response is malformed.
        """
        if not texts:
            return []

        all_embeddings: List[List[float]] = []
        headers = {"Authorization": f"Bearer {self.api_key}"}

        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            for start in range(0, len(texts), self.max_inputs_per_request):
                batch = list(texts[start : start + self.max_inputs_per_request])
                payload = {
                    "model": self.model,
                    "input": batch,
                }

                try:
                    response = await client.post(
                        self.base_url,
                        json=payload,
                        headers=headers,
                    )
                    response.raise_for_status()
                    data = response.json()
                except httpx.HTTPError as exc:
                    logger.error(
                        "Embedding request failed (%s): batch size=%d, error=%s",
                        type(exc).__name__,
                        len(batch),
                        str(exc),
                    )
                    raise ProviderError(
                        f"Embedding generation failed: {type(exc).__name__}"
                    ) from exc
                except ValueError as exc:
                    raise ProviderError("Embedding response is not valid JSON.") from exc

                embeddings = self._extract_embeddings(data, expected=len(batch))
                all_embeddings.extend(embeddings)

        return all_embeddings

    async def embed_one(self, text: str) -> List[float]:
        """
        Embed a single string and return its vector.
        """
        embeddings = await self.embed([text])
        return embeddings[0]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _extract_embeddings(self, data: dict, expected: int) -> List[List[float]]:
        """
        Parse and validate embedding output format.

        OpenAI returns:
            { "data": [ {"index": 0, "embedding": [...]}, ... ] }

        Records are re-ordered by ``index`` when present.

        Raises
        ------
        ProviderError
            If the API returns an unexpected structure.
        """
        if not isinstance(data, dict) or "data" not in data:
            raise ProviderError("Embedding response missing 'data' field.")

        records = data["data"]
        if not isinstance(records, list):
            raise ProviderError("'data' field must be a list.")

        if len(records) != expected:
            raise ProviderError(
                f"Embedding response has {len(records)} vectors for {expected} inputs."
            )

        if all(isinstance(r, dict) and isinstance(r.get("index"), int) for r in records):
            records = sorted(records, key=lambda r: r["index"])

        embeddings: List[List[float]] = []

        for index, record in enumerate(records):
            if not isinstance(record, dict) or "embedding" not in record:
                raise ProviderError(
                    f"Malformed embedding record at index {index}: {record!r}"
                )

            emb = record["embedding"]
            if not isinstance(emb, list) or not all(
                isinstance(x, (float, int)) for x in emb
            ):
                raise ProviderError(
                    f"Invalid embedding vector at index {index}: must be float list."
                )

            if len(emb) != self.dim:
                raise ProviderError(
                    f"Embedding at index {index} has dimension {len(emb)}, "
                    f"expected {self.dim}."
                )

            embeddings.append([float(x) for x in emb])

        return embeddings
