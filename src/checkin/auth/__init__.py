"""Authentication.

Learn: One bearer credential, two ways to back it:
1. Static demo tokens → fixed identity table (demo feature, not security)
2. Signed JWT access tokens → issued by the register/login mutations

Both resolve to an Identity {user_id, email} through a single
TokenVerifier, used by both the GraphQL context and the WebSocket handshake.
"""
