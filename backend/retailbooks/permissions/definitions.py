# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    ("products.view", "View Products", "View products, stock levels and stock movements", PermissionCategory.INVENTORY),
    ("products.manage", "Manage Products", "Create, edit and deactivate products", PermissionCategory.INVENTORY),
    ("stock.adjust", "Adjust Stock", "Post manual stock adjustments and purchases", PermissionCategory.INVENTORY),
    ("warehouses.view", "View Warehouses", "View warehouses and their stock", PermissionCategory.INVENTORY),
    ("warehouses.manage", "Manage Warehouses", "Create and edit warehouses", PermissionCategory.INVENTORY),
    ("stock.transfer", "Transfer Stock", "Move stock between warehouses, complete and cancel transfers", PermissionCategory.INVENTORY),
]


# -- CUSTOMERS --

CUSTOMER_PERMISSIONS = [
    ("customers.view", "View Customers", "View customers and their account ledger", PermissionCategory.CUSTOMERS),
    ("customers.manage", "Manage Customers", "Create and edit customers", PermissionCategory.CUSTOMERS),
]


# -- SALES --

SALES_PERMISSIONS = [
    ("sales.view", "View Sales", "View sales and sale items", PermissionCategory.SALES),
    ("sales.create", "Create Sale", "Create sales", PermissionCategory.SALES),
    ("sales.cancel", "Cancel Sale", "Cancel completed sales and reverse their effects", PermissionCategory.SALES),
]

RETURN_PERMISSIONS = [
    ("returns.view", "View Returns", "View returns", PermissionCategory.RETURNS),
    ("returns.create", "Create Return", "Create returns", PermissionCategory.RETURNS),
]

QUOTE_PERMISSIONS = [
    ("quotes.view", "View Quotes", "View quotes", PermissionCategory.QUOTES),
    ("quotes.manage", "Manage Quotes", "Create, edit, send, accept, reject and delete quotes", PermissionCategory.QUOTES),
    ("quotes.convert", "Convert Quote", "Convert a quote into a sale", PermissionCategory.QUOTES),
]


# -- FINANCE --

FINANCE_PERMISSIONS = [
    ("accounts.view", "View Accounts", "View cash/bank accounts, movements and transfers", PermissionCategory.FINANCE),
    ("accounts.manage", "Manage Accounts", "Create accounts, post movements and transfers", PermissionCategory.FINANCE),
    ("payments.view", "View Payments", "View received payments", PermissionCategory.FINANCE),
    ("payments.create", "Record Payment", "Record customer collections", PermissionCategory.FINANCE),
    ("expenses.view", "View Expenses", "View expenses and expense totals by category", PermissionCategory.FINANCE),
    ("expenses.manage", "Manage Expenses", "Record, edit and delete expenses", PermissionCategory.FINANCE),
]


# -- E-DOCUMENTS --

EDOCUMENT_PERMISSIONS = [
    ("edocuments.view", "View e-Documents", "View e-documents and their logs", PermissionCategory.EDOCUMENTS),
    ("edocuments.manage", "Manage e-Documents", "Create, submit, send and cancel e-documents", PermissionCategory.EDOCUMENTS),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    ("reports.view", "View Reports", "View sales summary and stock alerts", PermissionCategory.REPORTS),
    ("reports.advanced", "View Advanced Reports", "View VAT and receivables reports", PermissionCategory.REPORTS),
]


# -- USERS / TENANT --

USER_PERMISSIONS = [
    ("users.view", "View Users", "View users of the tenant", PermissionCategory.USERS),
    ("users.manage", "Manage Users", "Create users, change roles and deactivate users", PermissionCategory.USERS),
]

TENANT_PERMISSIONS = [
    ("tenant.view", "View Tenant", "View tenant profile, plan and usage", PermissionCategory.TENANT),
    ("tenant.manage", "Manage Tenant", "Edit tenant profile and settings", PermissionCategory.TENANT),
    ("security.view", "View Security Events", "View the tenant's security audit log", PermissionCategory.TENANT),
]


PERMISSION_DEFINITIONS = (
    INVENTORY_PERMISSIONS
    + CUSTOMER_PERMISSIONS
    + SALES_PERMISSIONS
    + RETURN_PERMISSIONS
    + QUOTE_PERMISSIONS
    + FINANCE_PERMISSIONS
    + EDOCUMENT_PERMISSIONS
    + REPORT_PERMISSIONS
    + USER_PERMISSIONS
    + TENANT_PERMISSIONS
)


# Plan feature a permission depends on. Permissions not listed need no feature.
PERMISSION_FEATURES = {
    "sales.view": "sales",
    "sales.create": "sales",
    "sales.cancel": "sales",
    "returns.view": "returns",
    "returns.create": "returns",
    "quotes.view": "quotes",
    "quotes.manage": "quotes",
    "quotes.convert": "quotes",
    "edocuments.view": "eDocuments",
    "edocuments.manage": "eDocuments",
    "warehouses.view": "warehouses",
    "warehouses.manage": "warehouses",
    "stock.transfer": "multiWarehouse",
    "reports.advanced": "advancedReports",
}
