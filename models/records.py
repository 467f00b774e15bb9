from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter


class EntityType(str, Enum):
    SALE = "sale"
    SERVICE = "service"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def _lenient_datetime(v: Any) -> Any:
    """
    Dashboard documents hold Firestore timestamps, ISO strings or bare dates.
    Anything unreadable is treated as absent so one bad field never fails a parse.
    """
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v
    if isinstance(v, date):
        return datetime(v.year, v.month, v.day)
    if isinstance(v, str):
        try:
            return datetime.fromisoformat(v.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def _lenient_float(v: Any) -> Any:
    if v is None or v == "":
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


def _lenient_str(v: Any) -> Any:
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return v


LenientDatetime = Annotated[Optional[datetime], BeforeValidator(_lenient_datetime)]
LenientFloat = Annotated[Optional[float], BeforeValidator(_lenient_float)]
LenientStr = Annotated[Optional[str], BeforeValidator(_lenient_str)]


class _SourceRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str

    def display_fields(self) -> Dict[str, Any]:
        # Forwarded verbatim into the notification; the engine never interprets them.
        return self.model_dump(exclude={"id", "entity_type", "expiration_date"})


class SaleRecord(_SourceRecord):
    entity_type: Literal[EntityType.SALE] = EntityType.SALE
    expiration_date: LenientDatetime = Field(default=None, alias="fechaFin")

    status: LenientStr = Field(default=None, alias="estado")
    client_id: LenientStr = Field(default=None, alias="clienteId")
    client_name: LenientStr = Field(default=None, alias="clienteNombre")
    service_id: LenientStr = Field(default=None, alias="servicioId")
    service_name: LenientStr = Field(default=None, alias="servicioNombre")
    service_email: LenientStr = Field(default=None, alias="servicioCorreo")
    category_id: LenientStr = Field(default=None, alias="categoriaId")
    category_name: LenientStr = Field(default=None, alias="categoriaNombre")
    profile_name: LenientStr = Field(default=None, alias="perfilNombre")
    payment_method_name: LenientStr = Field(default=None, alias="metodoPagoNombre")
    currency: LenientStr = Field(default=None, alias="moneda")
    billing_cycle: LenientStr = Field(default=None, alias="cicloPago")
    start_date: LenientDatetime = Field(default=None, alias="fechaInicio")
    final_price: LenientFloat = Field(default=None, alias="precioFinal")


class ServiceRecord(_SourceRecord):
    entity_type: Literal[EntityType.SERVICE] = EntityType.SERVICE
    expiration_date: LenientDatetime = Field(default=None, alias="fechaVencimiento")

    service_name: LenientStr = Field(default=None, alias="nombre")
    service_type: LenientStr = Field(default=None, alias="tipo")
    account_email: LenientStr = Field(default=None, alias="correo")
    category_id: LenientStr = Field(default=None, alias="categoriaId")
    category_name: LenientStr = Field(default=None, alias="categoriaNombre")
    payment_method_name: LenientStr = Field(default=None, alias="metodoPagoNombre")
    currency: LenientStr = Field(default=None, alias="moneda")
    service_cost: LenientFloat = Field(default=None, alias="costoServicio")
    billing_cycle: LenientStr = Field(default=None, alias="cicloPago")


PrimaryRecord = Annotated[Union[SaleRecord, ServiceRecord], Field(discriminator="entity_type")]

_RECORD_ADAPTER: TypeAdapter[PrimaryRecord] = TypeAdapter(PrimaryRecord)


def parse_record(entity_type: EntityType, doc_id: str, data: Dict[str, Any]) -> PrimaryRecord:
    """Build the typed variant for a raw dashboard document. Raises pydantic.ValidationError."""
    return _RECORD_ADAPTER.validate_python({**data, "id": doc_id, "entity_type": entity_type})


class Notification(BaseModel):
    model_config = ConfigDict(use_enum_values=True, extra="ignore")

    id: str = ""
    entity_type: EntityType
    source_id: str
    # None only on documents salvaged from an unreadable write; the next sync overwrites them.
    days_remaining: Optional[int] = None
    priority: Optional[Severity] = None
    read: bool = False
    highlighted: bool = False
    title: str = ""
    message: str = ""
    event_date: Optional[datetime] = None
    display: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"id"})
