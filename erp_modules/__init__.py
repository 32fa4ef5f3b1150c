"""
ERP business modules.

Each module declares the workflow tables for its document kinds:

- sales: quotes, sales orders, invoices, sales returns, core returns
- purchasing: purchase orders, vendor bills
- inventory: reorder alerts

``erp_modules.registry.WORKFLOWS`` maps every kind to its table.
"""
