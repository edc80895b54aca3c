# storefront/main.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
import uvicorn

from storefront.api.routers import carts, health, orders, users
from storefront.data.database import create_db_engine, create_session_factory, init_db
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.utils.settings import DATABASE_URL
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def create_app(
    database_url: str | None = None,
    lock_service: LockService | None = None,
    notification_service: NotificationService | None = None,
) -> FastAPI:
    """
    Sklada aplikacje: engine, fabryka sesji i lock service powstaja tutaj
    raz i trafiaja do serwisow przez app.state, bez globalnych singletonow.
    """
    engine = create_db_engine(database_url or DATABASE_URL)
    init_db(engine)
    logger.info("Database tables ready")

    app = FastAPI(
        title="Storefront Cart & Order Service",
        version="1.0.0",
    )
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.lock_service = lock_service or LockService()
    app.state.notification_service = notification_service or NotificationService()

    @app.exception_handler(RequestValidationError)
    async def invalid_input_handler(request: Request, exc: RequestValidationError):
        # bledne dane wejsciowe to 400, 422 zostaje dla InsufficientStock
        return JSONResponse(
            status_code=400,
            content={
                "detail": {
                    "error": "InvalidInput",
                    "message": "Niepoprawne dane wejsciowe",
                    "errors": jsonable_encoder(exc.errors()),
                }
            },
        )

    # Include routers
    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(carts.router)
    app.include_router(orders.router)

    return app


# uvicorn storefront.main:create_app --factory
if __name__ == "__main__":
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
