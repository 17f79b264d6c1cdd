"""
Shared building blocks: transactions, sequence counters, domain events and audit trail.
"""
