"""
Operations Layer

Business logic that sits between the Store and the command surface.

- PlayerOperations: registration, competing flag and display-name sync
- MatchOperations (league_bot.database.match_operations): match lifecycle
"""
