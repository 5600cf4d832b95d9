"""
Linkup Backend - Services Layer
=================================

Business logic between the API pipeline and the database.

    credentials.py   password hashing + session tokens (passlib, python-jose)
    rate_limiter.py  fixed / sliding window admission per route class
    post_service.py  posts, likes, comments
    user_service.py  registration, login, presence, profiles, directory
    seed_service.py  demo data

Services take an AsyncSession and raise LinkupError subclasses; they never
build HTTP responses.
"""
