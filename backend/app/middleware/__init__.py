"""
RouteLog Backend - Middleware Package
=======================================

Cross-cutting concerns applied to every request.

Middleware Chain:
    Request → [Request ID] → [Logging] → [Access Gate] → [CORS] → Route Handler

    1. Request ID: correlation ID for logs and error bodies
    2. Logging: one access-log line per request, rejections included
    3. Access Gate: bearer token + `full_access` scope, before any handler
    4. CORS: FastAPI's CORSMiddleware
"""
