"""LAN chat hub: realtime presence and broadcast for a local-network chat room."""
