from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings
from core.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging()

    application = FastAPI(
        title=settings.app_name,
        description="Upload a PDF and chat with an AI model about its contents",
        version="1.0.0",
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # DB lifecycle
    from db.mongo import connect_to_mongo, close_mongo_connection

    @application.on_event("startup")
    async def startup_event():
        await connect_to_mongo()

    @application.on_event("shutdown")
    async def shutdown_event():
        await close_mongo_connection()

    # Routers are imported lazily to avoid circular deps during app creation
    from routers.auth import router as auth_router
    from routers.chat import router as chat_router
    from routers.documents import router as documents_router
    from routers.health import router as health_router

    application.include_router(auth_router, prefix="/auth", tags=["auth"])
    application.include_router(documents_router, prefix="/documents", tags=["documents"])
    application.include_router(chat_router, tags=["chat"])
    application.include_router(health_router, tags=["health"])

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
