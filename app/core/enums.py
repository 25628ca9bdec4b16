from enum import Enum


class AuditAction(str, Enum):
    create = "CREATE"
    update = "UPDATE"
    delete = "DELETE"
    status_change = "STATUS_CHANGE"
    restore = "RESTORE"


class AuditEntityType(str, Enum):
    category = "category"
    product = "product"
    location = "location"
    area = "area"
    inventory = "inventory"
    stock_movement = "stock_movement"
    supplier = "supplier"
    order = "order"
    user = "user"
