"""
FastAPI routers, one module per area: ingestion, upload status and
platform integrations.
"""
