from .tenancy import Plan, Tenant
from .auth import User, AuthSession
from .security import SecurityEvent
from .inventory import Product, Warehouse, WarehouseStock, StockMovement, StockTransfer, StockTransferItem
from .customers import Customer, CustomerTransaction
from .finance import Account, AccountMovement, AccountTransfer, Expense
from .sales import Sale, SaleItem, Payment
from .documents import Return, ReturnItem, Quote, QuoteItem, DocumentSequence
from .edocuments import EDocument, EDocumentLog

__all__ = [
    'Plan', 'Tenant',
    'User', 'AuthSession', 'SecurityEvent',
    'Product', 'Warehouse', 'WarehouseStock', 'StockMovement', 'StockTransfer', 'StockTransferItem',
    'Customer', 'CustomerTransaction',
    'Account', 'AccountMovement', 'AccountTransfer', 'Expense',
    'Sale', 'SaleItem', 'Payment',
    'Return', 'ReturnItem', 'Quote', 'QuoteItem', 'DocumentSequence',
    'EDocument', 'EDocumentLog',
]
