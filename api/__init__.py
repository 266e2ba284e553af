"""
API Layer - HTTP surface of the gateway

The gateway's real traffic is the WebSocket endpoint in app.py; the HTTP
API only exposes health and status for load balancers and operators.
"""
