"""
Core gateway services.

- errors: error taxonomy shared by every layer
- ledger: balance oracle (cached ledger lookup)
- messaging: inbound message router and its transports
"""
