"""
Payments bounded context: rent collection, owner disbursement and balances.
"""
