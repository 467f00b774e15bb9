from __future__ import annotations

from models.records import EntityType, PrimaryRecord, SaleRecord, ServiceRecord

_ENTITY_LABEL = {
    EntityType.SALE: "Sale",
    EntityType.SERVICE: "Service",
}


def _plural(n: int) -> str:
    return "day" if n == 1 else "days"


def render_title(days_remaining: int, entity_type: EntityType) -> str:
    label = _ENTITY_LABEL[EntityType(entity_type)]
    if days_remaining < 0:
        overdue = abs(days_remaining)
        return f"{label} expired ({overdue} {_plural(overdue)} ago)"
    if days_remaining == 0:
        return f"{label} expires today"
    if days_remaining == 1:
        return f"{label} expires tomorrow"
    return f"{label} expires in {days_remaining} days"


def render_message(record: PrimaryRecord) -> str:
    if isinstance(record, SaleRecord):
        return f"{record.client_name or ''} - {record.service_name or ''}"
    if isinstance(record, ServiceRecord):
        return f"{record.service_name or ''} - {record.category_name or 'No category'}"
    raise TypeError(f"unsupported_record_type:{type(record).__name__}")
