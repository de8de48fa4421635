"""Auth0 user sync.

Exchanges client credentials for a Management API token, pages through the
tenant's users and their recent login logs, normalizes each user and upserts
users and login events into PostgreSQL.
"""
