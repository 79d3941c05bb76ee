# Identity provider sessions (Clerk)
# This module uses the identity provider's hosted authentication
# No custom tables are required - the provider handles:
# - Sign up, sign in and session management
# - Session JWT issuance (RS256, keys published as JWKS)
# - User lifecycle events delivered through signed webhooks

"""
Session tokens are verified locally against the provider JWKS:
- sub: user id, also the primary key of the users table
- sid: session id
- email: present when the session template includes it
- exp / iss: checked by PyJWT

The users.role column (user | admin) is the only authorization data this module writes.
"""
