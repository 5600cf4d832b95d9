"""
Linkup Backend - API Routes Package
=====================================

    auth.py    /api/auth/register, /login, /me, /logout
    posts.py   /api/posts, /api/posts/{id}, /like, /comment
    users.py   /api/users, /api/users/me, /api/users/{id}
    seed.py    /api/seed
    health.py  /health

Routes stay thin: each one picks a RouteConfig (auth, rate-limit class,
validation schema) and hands a small handler to the API pipeline.
"""
