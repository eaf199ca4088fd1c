"""auth/ -- Authentication package for Mode.

Layer rule: auth/ imports only core/, stdlib and third-party libraries.
It does NOT import from api/ or web/.
api/ and web/ import from auth/, not the other way around.
"""
