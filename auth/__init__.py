"""auth/ -- Authentication and authorization package for UserDesk.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or users/.
api/ and users/ import from auth/, not the other way around.
"""
