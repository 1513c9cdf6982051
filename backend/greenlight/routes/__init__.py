"""
Greenlight — API Routes Package
================================

Route Inventory:
    - health.py:  GET    /v1/healthcheck
    - movies.py:  GET    /v1/movies
                  POST   /v1/movies
                  GET    /v1/movies/{id}
                  PATCH  /v1/movies/{id}
                  DELETE /v1/movies/{id}
    - params.py:  path / query / body reading helpers

Routes stay thin: read input, call MovieService, return the envelope.
"""
