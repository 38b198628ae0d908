"""tasktrack — multi-tenant task tracker.

Users register, log in for a signed bearer token, and manage their own
tasks. Every task read and write is scoped to the identity carried by the
token; nobody sees anybody else's rows.
"""

__version__ = "0.1.0"
