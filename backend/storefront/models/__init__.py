from .catalog import Product, StockInboundRecord
from .orders import Order, OrderItem
from .audit import AuditLogEntry

__all__ = [
    'Product', 'StockInboundRecord',
    'Order', 'OrderItem',
    'AuditLogEntry',
]
