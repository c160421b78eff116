"""auth/ -- Session tokens, identity-provider boundary, and signup provisioning.

Layer rule: auth/ imports only stdlib, third-party libraries, core/, and community/.
It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""
