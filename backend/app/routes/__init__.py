# Routes package init
"""
RouteLog Backend - API Routes Package
=======================================

Route Inventory:
    - route.py:   /route            (list, merged geometry, nearby, create, disown)
    - health.py:  GET /health       (service health check, outside the access gate)

Routes stay thin: they read filters and bodies, call the store or service,
and return response models. Business rules live in app.services.
"""
