# app/main.py
from fastapi import FastAPI

from app.api.routes import health, meetings, users
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.db.session import dispose_engine, init_db_for_startup
from app.services.scheduling_lock import SchedulingLock


def create_app() -> FastAPI:
    """
    Application factory for the Meeting Scheduler service.
    """
    settings = get_settings()
    configure_logging()

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Scheduling backend for organizers and participants.\n\n"
            "Creates, updates, cancels and deletes meetings and manages their "
            "participants while guaranteeing that nobody is double-booked: "
            "every change that touches a time range or a roster is checked "
            "against the participants' other non-cancelled meetings."
        ),
        version="0.1.0",
    )

    # One lock registry per app, shared by every request
    app.state.scheduling_lock = SchedulingLock()

    # Routers
    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(meetings.router)

    @app.on_event("startup")
    async def on_startup() -> None:  # pragma: no cover
        await init_db_for_startup()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:  # pragma: no cover
        await dispose_engine()

    return app


app = create_app()
