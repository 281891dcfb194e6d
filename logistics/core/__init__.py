"""
Reconciliation core: unit conversion, distribution ledger, container packing,
order lifecycle and payment reconciliation.

Pure functions over plain objects. Nothing here touches Flask or the database.
"""
