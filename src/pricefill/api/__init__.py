"""HTTP surface -- FastAPI app exposing the price resolver."""
