"""
Identity collaborator: read-only access to user profiles and roles.

Authentication happens upstream; the core only resolves an authenticated
user id to a profile and treats its role as an opaque capability tag.
"""
