"""users/ -- User record management (list, read, create, update, delete).

Layer rule: users/ may import from auth/ and core/. It does NOT import from api/.
"""
