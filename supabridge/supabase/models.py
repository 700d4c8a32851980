"""
Modelos de datos para Supabase Realtime.
Define los payloads de cambios de filas y los estados de suscripción.
"""
from enum import Enum
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field


class RealtimeEventType(str, Enum):
    """Tipos de eventos de cambio de fila."""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ALL = "*"


class SubscriptionState(str, Enum):
    """Estados de conexión de una suscripción."""
    UNJOINED = "unjoined"
    JOINING = "joining"
    JOINED = "joined"
    CLOSED = "closed"


class SubscriptionStatus(str, Enum):
    """Estados reportados al callback de ``subscribe()``."""
    SUBSCRIBED = "SUBSCRIBED"
    SUBSCRIPTION_ERROR = "SUBSCRIPTION_ERROR"
    CLOSED = "CLOSED"


class RealtimePayload(BaseModel):
    """
    Payload de un cambio de fila entregado a los callbacks.
    """
    schema_name: str = Field(..., alias="schema", description="Schema de la tabla")
    table: str = Field(..., description="Tabla que cambió")
    commit_timestamp: Optional[str] = Field(default=None, description="Timestamp del commit")
    event_type: RealtimeEventType = Field(..., alias="eventType", description="INSERT, UPDATE o DELETE")
    new: Dict[str, Any] = Field(default_factory=dict, description="Registro nuevo (INSERT y UPDATE)")
    old: Dict[str, Any] = Field(default_factory=dict, description="Registro anterior (UPDATE y DELETE)")
    columns: List[Dict[str, Any]] = Field(default_factory=list)

    model_config = {"extra": "ignore", "populate_by_name": True}

    @classmethod
    def from_message(cls, message: Dict[str, Any]) -> "RealtimePayload":
        """
        Construye el payload desde un mensaje crudo del transporte.

        El cuerpo puede venir anidado en ``data`` y el tipo en ``type`` o ``eventType``.
        """
        body = message.get("data") if isinstance(message.get("data"), dict) else message
        event_type = str(body.get("eventType") or body.get("type") or "").upper()
        record = body.get("record") or body.get("new") or {}
        old_record = body.get("old_record") or body.get("old") or {}

        return cls(
            schema=body.get("schema", ""),
            table=body.get("table", ""),
            commit_timestamp=body.get("commit_timestamp"),
            eventType=event_type,
            new=record if event_type in ("INSERT", "UPDATE") else {},
            old=old_record if event_type in ("UPDATE", "DELETE") else {},
            columns=body.get("columns") or []
        )


class OpenSubscriptions(BaseModel):
    """Resultado de ``remove_subscription``."""
    open_subscriptions: int = Field(..., ge=0)

    model_config = {"extra": "forbid"}
