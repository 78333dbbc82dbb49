"""Game domain services: deck, match engine, timer, scores and sessions.

This package contains pure(ish) domain logic that is driven by the HTTP
routes and socket handlers, keeping transport concerns separated from the
core game mechanics.
"""
