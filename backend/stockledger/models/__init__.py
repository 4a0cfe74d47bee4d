from .tenancy import Organization, OrganizationSetting
from .inventory import Product, BundleComponent, InventoryLot, DamagedStockLog
from .customers import Customer, LedgerTransaction
from .sales import Invoice, DocumentLineItem, LineItemComponent, Sale, SaleItem
from .documents import Quotation, Return, ReturnItem, ReturnExpense, DocumentSequence, ActivityLog
from .repairs import Repair, RepairItem

__all__ = [
    'Organization', 'OrganizationSetting',
    'Product', 'BundleComponent', 'InventoryLot', 'DamagedStockLog',
    'Customer', 'LedgerTransaction',
    'Invoice', 'DocumentLineItem', 'LineItemComponent', 'Sale', 'SaleItem',
    'Quotation', 'Return', 'ReturnItem', 'ReturnExpense', 'DocumentSequence', 'ActivityLog',
    'Repair', 'RepairItem',
]
