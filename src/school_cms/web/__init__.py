"""Web API for the school CMS (FastAPI)."""
