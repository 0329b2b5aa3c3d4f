"""
FastAPI backend for NBA Props.

Provides read-only REST API endpoints for:
- Stored per-game results
- The latest parlay slips
- Health of the last batch
"""
