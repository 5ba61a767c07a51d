"""Handler modules for CRD resources.

Importing a kind module registers its kopf handlers; ``main`` imports them
all. This package itself stays import-light so resolvers can use
``handlers.shared`` without registering handlers.
"""
