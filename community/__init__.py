"""community/ -- Profiles, mentor directory, and peer messages.

Layer rule: community/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or auth/.
api/ and auth/ import from community/, not the other way around.
"""
