"""
Greenlight — Middleware Package
================================

Middleware Chain (outermost first):
    Request → [Request ID] → [Logging] → [Recover Panic] → [Rate Limit] → [CORS]
            → [Body Limit] → Router

    - request_id.py: X-Request-ID header and the request_id context variable
    - logging.py:    one access-log line per request, level by status class
    - recover.py:    unhandled exception → logged JSON 500, Connection: close
    - rate_limit.py: per-client token bucket → 429 with Retry-After
    - body_limit.py: bodies over MAX_BODY_BYTES → 400 before JSON decoding

    A recovered 500 passes back through Logging and Request ID, so it is logged
    and carries the correlation ID like any other response.
"""
