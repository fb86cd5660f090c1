"""
Main API module for shortmap.

Responsibilities:
    - Expose REST endpoints over the mapping service (create, batch create,
      lookup, delete, cleanup, basic and advanced statistics, export)
    - Redirect shortcodes to their targets while counting clicks
    - Translate mapping errors into HTTP status codes

Architecture:
    - App Factory pattern (create_app) for test isolation and DI.
    - Storage is chosen by the factory from env (memory by default); the
      service is stateless and built once per app around that storage.
    - All business rules live in MappingService; routes only translate.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from shortmap.analytics.statistics import short_url_for
from shortmap.config import settings
from shortmap.errors import MappingError, NotFound
from shortmap.manager.mapping_service import Clock, MappingService
from shortmap.models import MappingRecord, MappingRequest
from shortmap.storage.base import BaseStorage
from shortmap.storage.storage_factory import get_storage

ERROR_STATUS = {
    "InvalidUrl": 400,
    "InvalidShortcode": 400,
    "InvalidPeriod": 400,
    "ShortcodeTaken": 409,
    "NotFound": 404,
    "ShortcodeSpaceExhausted": 503,
    "StorageFailure": 503,
}


class BatchRequest(BaseModel):
    """
    Request payload for creating several mappings at once.

    Items stay loose objects so a malformed entry becomes a per-item failure
    instead of rejecting the whole batch.
    """
    items: List[Dict[str, Any]]


def create_app(storage: Optional[BaseStorage] = None, clock: Optional[Clock] = None) -> FastAPI:
    """
    Factory function to build and configure a new FastAPI app instance.

    Args:
        storage (Optional[BaseStorage]): Backend to use; defaults to `get_storage()`.
        clock (Optional[Clock]): Time source for expiry checks (tests freeze it).

    Returns:
        FastAPI: A configured application with its own storage and service.
    """
    app = FastAPI(
        title="shortmap",
        description="Shortcode to URL mappings with expiry and click accounting",
        docs_url="/docs",
    )
    log = logging.getLogger("shortmap.api")

    # basic console logging (optional)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        )

    storage = storage if storage is not None else get_storage()
    service = MappingService(storage=storage, clock=clock)
    log.info("shortmap storage backend: %s", type(storage).__name__)

    # ----------------------------------------------------------------
    # Utilities
    # ----------------------------------------------------------------
    def _base_origin(request: Request) -> str:
        """Origin short URLs resolve against: the redirect route on this host."""
        return str(request.base_url).rstrip("/") + "/r"

    def _created_payload(record: MappingRecord, request: Request) -> Dict[str, Any]:
        data = record.to_json()
        data["shortUrl"] = short_url_for(_base_origin(request), record.shortcode)
        return data

    @app.exception_handler(MappingError)
    async def _mapping_error_handler(request: Request, exc: MappingError) -> JSONResponse:
        status = ERROR_STATUS.get(exc.code, 500)
        if status >= 500:
            log.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc)
        return JSONResponse(status_code=status, content={"error": exc.code, "detail": str(exc)})

    # Health check
    @app.get("/health")
    def health():
        return {"status": "ok"}

    # ----------------------------------------------------------------
    # Routes
    # ----------------------------------------------------------------
    @app.post("/mappings")
    def create_mapping(req: MappingRequest, request: Request) -> Dict[str, Any]:
        record = service.create_mapping(req.url, req.shortcode, req.expiry_hours)
        return _created_payload(record, request)

    @app.post("/mappings/batch")
    def create_mappings(req: BatchRequest, request: Request) -> Dict[str, Any]:
        """Partial success: valid items are created, invalid ones reported by index."""
        result = service.create_mappings(req.items)
        return {
            "created": [_created_payload(record, request) for record in result.created],
            "failures": [failure.as_dict() for failure in result.failures],
        }

    @app.get("/mappings")
    def list_mappings() -> List[Dict[str, Any]]:
        return [view.as_dict() for view in service.list_mappings()]

    @app.get("/mappings/{shortcode}")
    def get_mapping(shortcode: str) -> Dict[str, Any]:
        view = service.get_mapping(shortcode)
        if view is None:
            raise NotFound(f'No mapping for shortcode "{shortcode}"')
        return view.as_dict()

    @app.delete("/mappings/{shortcode}")
    def delete_mapping(shortcode: str) -> Dict[str, Any]:
        if not service.delete_mapping(shortcode):
            raise NotFound(f'No mapping for shortcode "{shortcode}"')
        return {"deleted": True, "shortcode": shortcode}

    @app.delete("/mappings")
    def clear_mappings() -> Dict[str, Any]:
        service.clear_all()
        return {"cleared": True}

    @app.post("/mappings/cleanup")
    def cleanup_expired() -> Dict[str, int]:
        return {"removed": service.cleanup_expired()}

    @app.get("/statistics")
    def statistics() -> Dict[str, int]:
        return service.compute_statistics().as_dict()

    @app.get("/statistics/advanced")
    def advanced_statistics() -> Dict[str, Any]:
        return service.compute_advanced_statistics().as_dict()

    @app.get("/export")
    def export(
        request: Request,
        base: Optional[str] = Query(None, description="Origin short URLs are resolved against."),
    ) -> Dict[str, Any]:
        return service.export_mappings(base or _base_origin(request))

    @app.get("/r/{shortcode}")
    def follow_shortcode(shortcode: str, request: Request) -> Response:
        """
        Count a click and send the client to the target.

        Browsers (Accept: text/html) get a 302 redirect; API clients get JSON
        with the target and the updated click count. Unknown shortcodes are
        404, expired ones 410 and their clicks are not counted.
        """
        view = service.get_mapping(shortcode)
        if view is None:
            raise NotFound(f'No mapping for shortcode "{shortcode}"')
        if not service.record_access(shortcode):
            if service.get_mapping(shortcode) is None:
                raise NotFound(f'No mapping for shortcode "{shortcode}"')
            return JSONResponse(
                status_code=410,
                content={"error": "Expired", "detail": f'Shortcode "{shortcode}" has expired'},
            )

        target = view.record.target_url
        accept = request.headers.get("accept", "").lower()
        if "text/html" in accept:
            return RedirectResponse(url=target, status_code=302)
        updated = service.get_mapping(shortcode)
        clicks = updated.record.click_count if updated else view.record.click_count + 1
        return JSONResponse({"targetUrl": target, "clickCount": clicks})

    return app


# Module-level app for `uvicorn main:app --reload`, using env-selected storage.
app = create_app()
