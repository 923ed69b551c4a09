# Services package init
"""
RouteLog Backend - Services Layer
===================================

Business logic between the routes (HTTP) and the database.

Service Inventory:
    - ReverseGeocoder / ImageHost (abstract): provider interfaces
    - GoogleGeocodingService: reverse geocoding over the Google Geocoding API
    - CloudinaryImageService: signed base64 uploads to Cloudinary
    - RouteStore: every query and write against route / waypoint
    - RouteService: validate → geocode → upload → persist for new routes
"""
