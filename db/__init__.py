"""
db/ - Database Layer
====================
Connection lifecycle policies and the one-time schema bootstrap.
This layer is the lowest in the architecture and has no dependencies on other layers.
"""
