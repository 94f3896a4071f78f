import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from conduit.config import settings
from conduit.database import engine
from conduit.errors import install_error_handlers
from conduit.middleware import RequestLoggingMiddleware
from conduit.routers import articles, profiles, tags, users

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Conduit API starting (env=%s)", settings.APP_ENV)
    yield
    # Shutdown
    await engine.dispose()

app = FastAPI(
    title="Conduit API",
    description="Articles, comments, profiles, follows, favorites and tags",
    version="1.0.0",
    lifespan=lifespan,
)

install_error_handlers(app)

# Middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(users.router)
app.include_router(profiles.router)
app.include_router(articles.router)
app.include_router(tags.router)

@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
