import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from .context import PushDecision, ServiceContext

logger = logging.getLogger(__name__)


def create_app(context: ServiceContext | None = None) -> FastAPI:
    """
    Create the webhook application.

    Args:
        context: Service context to serve with. When omitted, one is built
                 from the environment at startup.

    Returns:
        FastAPI application exposing /push and /health
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan context manager for FastAPI app.

        Handles startup and shutdown events:
        - Startup: Build the service context from the environment if needed
        - Shutdown: Let runs in flight finish; they are never cancelled
        """
        if getattr(app.state, "context", None) is None:
            app.state.context = ServiceContext.from_env()

        yield

        ctx: ServiceContext = app.state.context
        if ctx.active_tasks:
            logger.info(f"Waiting for {ctx.active_tasks} run(s) to finish...")
            await ctx.wait_idle()

    app = FastAPI(lifespan=lifespan)
    app.state.context = context

    app.post("/push")(receive_push)
    app.get("/health")(health_check)
    return app


def get_context(request: Request) -> ServiceContext:
    """
    Get the service context of the running application.

    Raises:
        RuntimeError: If the context is not initialized
    """
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise RuntimeError("Service context not initialized")
    return context


async def receive_push(
    request: Request, ctx: ServiceContext = Depends(get_context)
) -> JSONResponse:
    """
    Receive a push notification.

    Pushes to the mainline ref start a pipeline run in the background and
    return 202 immediately. Other refs are acknowledged without action.
    Malformed payloads are announced on Slack and acknowledged with 200;
    the webhook caller never sees the run's outcome.
    """
    body = await request.body()
    decision = await ctx.handle_push(body)
    status_code = 202 if decision is PushDecision.ACCEPTED else 200
    return JSONResponse({"status": decision.value}, status_code=status_code)


async def health_check(
    ctx: ServiceContext = Depends(get_context),
) -> dict[str, Any]:
    """
    Health check endpoint.

    Returns:
        Dictionary with status="ok" and whether a run is in progress
    """
    return {"status": "ok", "busy": ctx.gate.busy}


app = create_app()
