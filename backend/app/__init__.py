"""
RouteLog Backend - Application Package
========================================

Layers:
    routes/      HTTP concerns only (filters, status codes, response models)
    services/    route creation, geocoding and image hosting, the route store
    models/      SQLAlchemy tables (route, waypoint)
    schemas/     Pydantic request/response contracts
    middleware/  request ID, access logging, access gate
"""

__version__ = "1.0.0"
