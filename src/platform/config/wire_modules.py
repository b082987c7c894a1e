"""
Wire Modules Configuration

Defines the modules that need dependency injection wiring.
Shared between production and test environments.
"""

from types import ModuleType

from src.service.inventory.app.command import (
    adjust_capacity_use_case,
    bulk_update_inventory_use_case,
    create_ticket_inventory_use_case,
    refund_tickets_use_case,
)
from src.service.inventory.app.query import (
    list_active_holds_use_case,
    query_audit_log_use_case,
    reconcile_inventory_use_case,
)
from src.service.inventory.driving_adapter.http_controller import (
    admin_controller,
    inventory_controller,
)


WIRE_MODULES: list[ModuleType] = [
    create_ticket_inventory_use_case,
    adjust_capacity_use_case,
    bulk_update_inventory_use_case,
    refund_tickets_use_case,
    query_audit_log_use_case,
    reconcile_inventory_use_case,
    list_active_holds_use_case,
    inventory_controller,
    admin_controller,
]
