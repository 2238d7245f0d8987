"""Tic-tac-toe session core.

``board`` holds the rules, ``registry`` the live sessions and connection
bindings, and ``coordinator`` the join/move/reset/leave transitions that the
Socket.IO handlers call into.
"""
