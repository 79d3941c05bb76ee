# Identity-provider webhooks
# No tables of their own: user.created / user.updated events upsert rows in users
# (see narra/modules/users/models.py)

"""
Event payload fields read:
- type: user.created | user.updated (anything else is acknowledged and ignored)
- data.id: identity-provider user id
- data.email_addresses[].email_address, data.primary_email_address_id

Delivery is signed by svix: svix-id, svix-timestamp and svix-signature headers
over the raw request body.
"""
