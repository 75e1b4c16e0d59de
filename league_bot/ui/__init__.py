"""
UI Module - Discord UI Components

Available components:
- MatchConfirmationView: Confirm / Dispute buttons for submitted matches
"""
