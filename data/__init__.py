"""
Data Layer - external state the gateway talks to.

- bus: Redis message bus (inbound queue, outbound responses)
"""
