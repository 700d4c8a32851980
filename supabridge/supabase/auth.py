"""
Proveedor de credenciales sobre Supabase Auth (GoTrue).
Mantiene la sesión vigente para que cada request use el token actual.
"""
import logging
from typing import Optional, Dict
from urllib.parse import urlparse, parse_qs

from supabase_auth import AsyncGoTrueClient
from supabase_auth.errors import AuthError
from supabase_auth.types import Session

from ..realtime.protocols import CredentialProvider
from .types import SupabaseAuthError, SupabaseResponse


class GoTrueCredentialProvider(CredentialProvider):
    """
    Implementación de CredentialProvider usando ``AsyncGoTrueClient``.
    El token se actualiza con los eventos de cambio de estado de auth.
    """

    def __init__(
        self,
        auth_url: str,
        supabase_key: str,
        auto_refresh_token: bool = True,
        persist_session: bool = True,
        detect_session_in_url: bool = True,
        headers: Optional[Dict[str, str]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Inicializa el proveedor.

        Args:
            auth_url: Endpoint de auth (``<url>/auth/v1``)
            supabase_key: Clave del proyecto
            auto_refresh_token: Refrescar el token antes de expirar
            persist_session: Guardar la sesión en el storage
            detect_session_in_url: Aceptar sesiones desde URLs de callback OAuth
            headers: Headers extra para las llamadas de auth
            logger: Logger opcional
        """
        self.detect_session_in_url = detect_session_in_url
        self.logger = logger or logging.getLogger("supabridge.auth")
        self._session: Optional[Session] = None

        auth_headers = dict(headers or {})
        auth_headers["apikey"] = supabase_key
        auth_headers["Authorization"] = f"Bearer {supabase_key}"

        self.client = AsyncGoTrueClient(
            url=auth_url,
            headers=auth_headers,
            auto_refresh_token=auto_refresh_token,
            persist_session=persist_session
        )
        self._listener = self.client.on_auth_state_change(self._on_auth_state_change)

    @property
    def access_token(self) -> Optional[str]:
        return self._session.access_token if self._session else None

    @property
    def current_session(self) -> Optional[Session]:
        return self._session

    def _on_auth_state_change(self, event: str, session: Optional[Session]) -> None:
        if event == "SIGNED_OUT":
            self._session = None
        else:
            self._session = session
        self.logger.debug(f"Auth state changed: {event}")

    async def load_session(self) -> Optional[Session]:
        """Carga la sesión persistida (si existe) y la deja como vigente."""
        try:
            self._session = await self.client.get_session()
        except AuthError as e:
            self.logger.warning(f"Could not load persisted session: {e}")
            self._session = None
        return self._session

    async def detect_session_from_url(self, url: str) -> SupabaseResponse[Session]:
        """
        Extrae ``access_token``/``refresh_token`` de una URL de callback OAuth
        (fragmento o query string) y establece la sesión.

        Args:
            url: URL completa recibida en el callback

        Returns:
            SupabaseResponse con la sesión, o con error si la URL trae un error
            de OAuth o el servidor rechaza los tokens
        """
        if not self.detect_session_in_url:
            return SupabaseResponse[Session].ok(None)

        parsed = urlparse(url)
        params = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        params.update({k: v[0] for k, v in parse_qs(parsed.fragment).items()})

        if "error_description" in params or "error" in params:
            return SupabaseResponse[Session].fail(SupabaseAuthError(
                params.get("error_description") or params.get("error", "OAuth error"),
                error_code="oauth_error",
                details=params
            ))

        access_token = params.get("access_token")
        refresh_token = params.get("refresh_token")
        if not access_token or not refresh_token:
            return SupabaseResponse[Session].ok(None)

        try:
            response = await self.client.set_session(access_token, refresh_token)
        except AuthError as e:
            return SupabaseResponse[Session].fail(SupabaseAuthError(str(e), error_code="auth_error"))

        self._session = response.session
        self.logger.info("Session detected from URL")
        return SupabaseResponse[Session].ok(response.session)

    async def close(self) -> None:
        if self._listener is not None:
            self._listener.unsubscribe()
            self._listener = None
