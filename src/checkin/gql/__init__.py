"""GraphQL API (strawberry) — events, attendance, accounts.

Learn: The schema is mounted as a FastAPI router at /graphql, so it
shares the app's middleware, DB session dependency and auth.
"""
