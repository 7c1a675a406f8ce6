"""FastAPI validating webhook for Windows vCPU overcommit."""

from threading import Lock
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from rich.markup import escape

from windows_overcommit.admission.controller import AdmissionController
from windows_overcommit.admission.review import (
    CREATE,
    ReviewDecodeError,
    build_review_response,
    parse_review,
    request_uid,
)
from windows_overcommit.cluster.inventory import ClusterInventory, InventoryError
from windows_overcommit.common.config import SystemConfig, load_config
from windows_overcommit.common.logging import OperationLogger, get_logger
from windows_overcommit.workload.kinds import UnsupportedKindError, extract
from windows_overcommit.workload.spec import WorkloadDecodeError

log = get_logger(__name__)

HEALTHY = {"msg": "server is healthy"}


def _get_controller(app: FastAPI) -> AdmissionController:
    """Return the app controller, creating it on first use."""
    state = app.state
    with state.controller_lock:
        if state.controller is None:
            config: SystemConfig = state.config
            state.controller = AdmissionController(
                node_filter=config.node_filter,
                inventory=ClusterInventory.from_config(config.cluster),
            )
        return state.controller


def handle_review(app: FastAPI, body: bytes) -> Dict[str, Any]:
    """Run one admission review and return the response envelope.

    Every failure is turned into an explicit deny; listing failures fail
    closed.
    """
    try:
        review = parse_review(body)
    except ReviewDecodeError as e:
        log.error(escape(f"returning with message: [{e}]"))
        return build_review_response(request_uid(body), allowed=False, message=str(e))

    admission_request = review.request
    kind = admission_request.kind.kind
    op_log = OperationLogger(
        log,
        kind,
        admission_request.namespace,
        admission_request.name,
        admission_request.uid,
    )

    def respond(allowed: bool, message: str) -> Dict[str, Any]:
        if allowed:
            op_log.info(f"returning with message: [{message}]")
        else:
            op_log.warning(f"denied with message: [{message}]")
        return build_review_response(
            admission_request.uid,
            allowed=allowed,
            message=message,
            api_version=review.api_version,
        )

    if admission_request.operation != CREATE:
        return respond(
            True,
            f"skipping validation; unsupported operation "
            f"[{admission_request.operation}], only [{CREATE}] validated",
        )

    if admission_request.object_ is None:
        return respond(False, "failed extracting object from request; request has no object")

    try:
        workload = extract(
            kind,
            admission_request.object_,
            default_namespace=admission_request.namespace,
        )
    except (UnsupportedKindError, WorkloadDecodeError) as e:
        return respond(False, f"failed extracting object from request; {e}")

    try:
        decision = _get_controller(app).evaluate(workload)
    except (InventoryError, WorkloadDecodeError) as e:
        op_log.error(f"inventory listing failed: {e}")
        return respond(False, f"unable to validate request; {e}")

    return respond(decision.allowed, decision.message)


def create_app(
    config: Optional[SystemConfig] = None,
    controller: Optional[AdmissionController] = None,
) -> FastAPI:
    """Create the FastAPI app instance.

    Args:
        config: Configuration, loaded from file and environment if omitted.
        controller: Pre-built controller; when omitted one is created from
            ``config`` on the first validation request.
    """
    app = FastAPI(title="Windows vCPU Overcommit Webhook")
    app.state.config = config or load_config()
    app.state.controller = controller
    app.state.controller_lock = Lock()

    @app.get("/healthz")
    def healthz():
        return HEALTHY

    @app.post("/validate")
    async def validate(request: Request):
        log.debug("received validation request")
        body = await request.body()
        # Cluster listing blocks; keep it off the event loop.
        response = await run_in_threadpool(handle_review, request.app, body)
        return JSONResponse(response)

    return app


app = create_app()
