"""Game domain services: codes, scoring, rooms, the game state machine,
events and room cleanup.

This package contains pure(ish) domain logic that should be imported by
HTTP routes and socket handlers, keeping transport concerns separated
from core game mechanics.
"""
