"""auth/ -- Password hashing, token handling, and request authentication for OrgVault.

Layer rule: auth/ imports only stdlib, third-party libraries, core/, and the
vault/ domain models. api/ imports from auth/, not the other way around.
"""
