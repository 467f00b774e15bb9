# Centralized collection and field names to prevent drift with the dashboard.

COL_SYSTEM = "system"
DOC_NOTIFICATION_SYNC_STATE = "notification_sync_state"

# Primary records are owned by the dashboard CRUD layer; names match its collections.
COL_SALES = "Ventas"
COL_SERVICES = "servicios"

# Derived collection, written only by the reconciliation engine.
COL_NOTIFICATIONS = "notificaciones"

# Sales: active while estado == "activo"; lapse on fechaFin.
SALE_ACTIVE_FIELD = "estado"
SALE_ACTIVE_VALUE = "activo"
SALE_EXPIRATION_FIELD = "fechaFin"

# Services: active while activo == true; lapse on fechaVencimiento.
SERVICE_ACTIVE_FIELD = "activo"
SERVICE_ACTIVE_VALUE = True
SERVICE_EXPIRATION_FIELD = "fechaVencimiento"

# Notification document fields used in queries.
F_ENTITY_TYPE = "entity_type"
F_SOURCE_ID = "source_id"
F_READ = "read"
