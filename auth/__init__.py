"""auth/ -- Credential and session lifecycle for the registry admin interface.

AuthManager (auth/manager.py) is the only public entry point. The credential
file store, the bcrypt wrapper and the session token issuer are its internal
collaborators.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/, web/, or registry/.
api/ and web/ import from auth/, not the other way around.
"""
