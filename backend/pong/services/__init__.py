"""Game domain services: connections, rooms, matchmaking, scoring and timers.

This package holds the transport-agnostic core. Socket handlers and the
raw WebSocket listener only translate wire frames into calls on these
services, keeping transport concerns separated from match mechanics.
"""
