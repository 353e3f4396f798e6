"""
External service integrations.

Simple modules that wrap the routing service and its credentials. No magic.

- http.py        - Shared async HTTP client (httpx)
- credentials.py - ArcGIS credentials (API key, OAuth app client credentials)
- isochrone.py   - Drive-time polygons (ArcGIS World Service Area solver)
"""
