"""
Acceso REST sobre PostgREST.

``PendingQuery`` envuelve un request builder de ``postgrest`` y convierte los
fallos de red o de la API en ``SupabaseResponse`` fallidas.
"""
import logging
import time
from typing import Any, Callable, Dict, Optional

import httpx
from postgrest import AsyncPostgrestClient
from postgrest.exceptions import APIError

from ..realtime.protocols import QueryBuilderFactory
from .types import SupabaseResponse, TransportError

logger = logging.getLogger(__name__)


class PostgrestQueryBuilderFactory(QueryBuilderFactory):
    """Crea un ``AsyncPostgrestClient`` nuevo por llamada, con los headers de esa llamada."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def create(self, rest_url: str, schema: str, headers: Dict[str, str]) -> AsyncPostgrestClient:
        if self.timeout is None:
            return AsyncPostgrestClient(rest_url, schema=schema, headers=headers)
        return AsyncPostgrestClient(rest_url, schema=schema, headers=headers, timeout=self.timeout)


class PendingQuery:
    """
    Query REST lista para ejecutar.
    Los filtros y modificadores se delegan al builder envuelto.

    Si hay ``headers_provider``, ``execute()`` pide headers de credenciales
    nuevos justo antes de la llamada de red, así un token renovado después de
    construir la query es el que se envía.
    """

    def __init__(
        self,
        builder: Any,
        target: str,
        operation: str,
        headers_provider: Optional[Callable[[], Dict[str, str]]] = None
    ):
        self._builder = builder
        self.target = target
        self.operation = operation
        self._headers_provider = headers_provider

    def __repr__(self) -> str:
        return f"PendingQuery(target={self.target!r}, operation={self.operation!r})"

    @property
    def builder(self) -> Any:
        return self._builder

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)

        attr = getattr(self._builder, name)
        if not callable(attr):
            return self._wrap(attr)

        def forward(*args: Any, **kwargs: Any) -> Any:
            return self._wrap(attr(*args, **kwargs))

        return forward

    def _wrap(self, value: Any) -> Any:
        if hasattr(value, "execute") and not isinstance(value, PendingQuery):
            return PendingQuery(value, self.target, self.operation, self._headers_provider)
        return value

    async def execute(self) -> SupabaseResponse:
        """
        Ejecuta la query.

        Returns:
            SupabaseResponse con ``data`` y ``count``, o con ``TransportError``
            si la red o la API fallan
        """
        self._refresh_headers()
        started = time.perf_counter()
        try:
            response = await self._builder.execute()
        except APIError as e:
            logger.debug(f"{self.operation} on {self.target} rejected: {e.message}")
            return SupabaseResponse.fail(
                TransportError(
                    e.message or f"{self.operation} on {self.target} failed",
                    cause=e,
                    error_code=e.code or "api_error",
                    details={"hint": e.hint, "details": e.details}
                ),
                response_time_ms=_elapsed_ms(started)
            )
        except httpx.HTTPError as e:
            logger.debug(f"{self.operation} on {self.target} failed: {e}")
            return SupabaseResponse.fail(
                TransportError(f"{self.operation} on {self.target} failed: {e}", cause=e),
                response_time_ms=_elapsed_ms(started)
            )

        return SupabaseResponse.ok(
            getattr(response, "data", response),
            count=getattr(response, "count", None),
            response_time_ms=_elapsed_ms(started)
        )

    def _refresh_headers(self) -> None:
        if self._headers_provider is None:
            return
        headers = getattr(self._builder, "headers", None)
        if headers is not None:
            # request headers take precedence over the session defaults
            headers.update(self._headers_provider())


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
