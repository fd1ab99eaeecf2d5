"""
API Services Layer.

Database operations behind the API endpoints. Services take an
``AsyncSession`` and the collaborators they need as arguments; routes
resolve those from ``app.state`` through ``api.dependencies``.
"""
