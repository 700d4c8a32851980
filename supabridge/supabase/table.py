"""
Handle compuesto por tabla: operaciones REST más registro de suscripciones.
"""
import re
from typing import Any, Union, TYPE_CHECKING

from ..realtime.subscription import SubscriptionBuilder, ChangeCallback, WILDCARD_TABLE
from .models import RealtimeEventType
from .rest import PendingQuery
from .types import InvalidArgumentError, InvalidOperationError

if TYPE_CHECKING:
    from .client import SupabaseClient

# Characters that would change the REST path or query string
_INVALID_TABLE_CHARS = re.compile(r"[/?#\s]")


def validate_table_name(table_name: Any) -> str:
    """
    Valida un nombre de tabla.

    Raises:
        InvalidArgumentError: Si está vacío o contiene caracteres inválidos
    """
    if not isinstance(table_name, str) or not table_name:
        raise InvalidArgumentError("Table name must be a non-empty string", details={"table": table_name})
    if table_name != WILDCARD_TABLE and _INVALID_TABLE_CHARS.search(table_name):
        raise InvalidArgumentError(f"Malformed table name: {table_name!r}", details={"table": table_name})
    return table_name


class TableHandle:
    """
    Expone select/insert/update/upsert/delete y ``on()`` para una tabla.

    Cada operación REST crea un query builder nuevo y los headers de
    credenciales se vuelven a calcular en ``execute()``. El handle no guarda tokens.
    """

    def __init__(self, client: "SupabaseClient", table_name: str):
        self._client = client
        self.table_name = validate_table_name(table_name)
        self.subscription = SubscriptionBuilder(
            schema=client.schema,
            table=self.table_name,
            manager=client.subscription_manager
        )

    def __repr__(self) -> str:
        return f"TableHandle(table={self.table_name!r}, schema={self._client.schema!r})"

    @property
    def client(self) -> "SupabaseClient":
        return self._client

    @property
    def is_wildcard(self) -> bool:
        return self.table_name == WILDCARD_TABLE

    def _request_builder(self, operation: str) -> Any:
        if self.is_wildcard:
            raise InvalidOperationError(
                f"'{operation}' is not supported on the wildcard table; it is only valid for subscriptions",
                details={"table": self.table_name, "operation": operation}
            )
        return self._client.init_rest_client().from_(self.table_name)

    def _pending(self, operation: str, builder: Any) -> PendingQuery:
        return PendingQuery(builder, self.table_name, operation, self._client._get_auth_headers)

    def select(self, *columns: str, **kwargs: Any) -> PendingQuery:
        return self._pending("select", self._request_builder("select").select(*columns, **kwargs))

    def insert(self, values: Any, **kwargs: Any) -> PendingQuery:
        return self._pending("insert", self._request_builder("insert").insert(values, **kwargs))

    def update(self, values: Any, **kwargs: Any) -> PendingQuery:
        return self._pending("update", self._request_builder("update").update(values, **kwargs))

    def upsert(self, values: Any, **kwargs: Any) -> PendingQuery:
        return self._pending("upsert", self._request_builder("upsert").upsert(values, **kwargs))

    def delete(self, **kwargs: Any) -> PendingQuery:
        return self._pending("delete", self._request_builder("delete").delete(**kwargs))

    def on(self, event: Union[RealtimeEventType, str], callback: ChangeCallback) -> SubscriptionBuilder:
        """
        Registra un callback para cambios de esta tabla.

        Precondición ensure-connected: la conexión realtime compartida se abre
        (si hace falta, una sola vez) en el ``subscribe()`` final de la cadena,
        no aquí. ``on()`` es puro y sólo acumula el registro.

        Args:
            event: INSERT, UPDATE, DELETE o ``*``
            callback: Recibe un ``RealtimePayload``

        Returns:
            SubscriptionBuilder para encadenar más ``on()`` y terminar con ``subscribe()``
        """
        return self.subscription.on(event, callback)
