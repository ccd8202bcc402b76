"""
Genki v1.0 - Tournament Rating Engine

Glicko-2 skill ratings for trading-card-game organizations. Every player
carries a lifetime rating per game category plus a seasonal rating that is
re-seeded each competitive season. Ratings are updated once per completed
tournament.

Main components:
- ratings: Glicko-2 math, tiers, rating store, seasons, tournament processing
- db: SQLAlchemy models and session management
- web: FastAPI JSON API for leaderboards, history and season administration
"""

__version__ = "1.0.0"
