"""Presence, history and broadcast core of the LAN chat hub."""
