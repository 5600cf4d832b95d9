"""
Linkup Backend - Middleware Package
=====================================

Cross-cutting concerns applied to every request.

Chain (outermost first):
    RequestID → RequestLogging → GZip → CORS → route

Rate limiting is not middleware here: limits are per route class, so the
API pipeline applies them once it knows which route is being served.
"""
