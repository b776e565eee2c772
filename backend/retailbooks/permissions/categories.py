# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    INVENTORY = "INVENTORY"
    CUSTOMERS = "CUSTOMERS"
    SALES = "SALES"
    RETURNS = "RETURNS"
    QUOTES = "QUOTES"
    FINANCE = "FINANCE"
    EDOCUMENTS = "EDOCUMENTS"
    REPORTS = "REPORTS"
    USERS = "USERS"
    TENANT = "TENANT"
