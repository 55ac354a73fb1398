"""Legacy Routes — unversioned paths kept for older clients.

Invariants:
    - Every path here is an alias for a /api/v1 handler (same dependencies,
      same error codes, same response shape)
    - Hidden from the OpenAPI schema
"""

from fastapi import APIRouter, status

from swapsync.api.routes import events, swap_requests

router = APIRouter(prefix="/api", tags=["legacy"], include_in_schema=False)

router.add_api_route(
    "/swappable-slots", events.list_marketplace, methods=["GET"],
)
router.add_api_route(
    "/swap-request", swap_requests.propose_swap, methods=["POST"],
    status_code=status.HTTP_201_CREATED,
)
router.add_api_route(
    "/swap-response/{request_id}", swap_requests.respond_to_swap,
    methods=["POST"],
)
