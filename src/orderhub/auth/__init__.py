"""Authentication and authorization.

Learn: three pieces, leaves first:
1. TokenService — issues/validates signed, time-bound tokens (jwt.py)
2. Identity resolution — Bearer header → CurrentIdentity or None (dependencies.py)
3. AuthorizationPolicy — owner/role checks, swappable by config (policy.py)

Passwords are bcrypt-hashed (password.py).
"""
