"""
FastAPI backend for Fantasy Tavern.

Provides REST API endpoints for:
- Weekly FAAB betting lines
- Bet placement and history
- Settlement and commissioner exports
- League registration and sign-in
"""
