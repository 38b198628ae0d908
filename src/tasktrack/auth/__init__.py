"""Authentication and authorization.

One authentication path: username/password → signed JWT bearer token.
The token resolves to a RequestIdentity on every request, and that
identity is what scopes task queries to their owner.
"""
