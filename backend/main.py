from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo import MongoClient
from pymongo.errors import PyMongoError
from pymongo.server_api import ServerApi

from config import DEFAULT_ENV_FILE, Settings, cors_origins_from_env, load_env_file, load_settings
from errors import GatewayError, UpstreamError
from event_query import SearchRequest, build_event_query
from favorites_store import FAVORITES_COLLECTION, Favorite, FavoritesStore
from geo_lookup import GeohashResolver, make_geohash_resolver
from ticketmaster_client import TicketmasterClient

# Auto-load backend/.env if present, so LOG_LEVEL and CORS_ORIGINS there apply under `uvicorn main:app`.
load_env_file(DEFAULT_ENV_FILE)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error."


def _error_body(message: str, **extra: Any) -> dict[str, Any]:
    # `message` is what the existing frontend reads; `detail` matches FastAPI's own errors.
    return {"detail": message, "message": message, **extra}


def connect_mongo(settings: Settings) -> MongoClient:
    """
    Build the single long-lived Mongo client and ping it once.
    A failed ping is logged, not fatal: pymongo reconnects lazily on first use.
    """
    client: MongoClient = MongoClient(settings.resolved_mongodb_uri, server_api=ServerApi("1"))
    try:
        client.admin.command("ping")
        logger.info("Connected to MongoDB")
    except PyMongoError as e:
        logger.error("MongoDB ping failed: %s", e)
    return client


@asynccontextmanager
async def _lifespan(app: FastAPI):
    state = app.state
    mongo_client: Optional[MongoClient] = None

    if state.settings is None:
        # ConfigurationError propagates and aborts startup.
        state.settings = load_settings(DEFAULT_ENV_FILE)
    settings: Settings = state.settings

    if state.ticketmaster is None:
        state.ticketmaster = TicketmasterClient(settings.ticketmaster_api_key)
    if state.resolve_geohash is None:
        state.resolve_geohash = make_geohash_resolver(settings.ipinfo_token)
    if state.favorites is None:
        mongo_client = connect_mongo(settings)
        store = FavoritesStore(mongo_client[settings.mongodb_db][FAVORITES_COLLECTION])
        try:
            store.ensure_indexes()
        except PyMongoError as e:
            logger.warning("Could not ensure favorites index: %s", e)
        state.favorites = store

    logger.info("Event gateway ready")
    try:
        yield
    finally:
        if mongo_client is not None:
            mongo_client.close()


def _component(name: str) -> Callable[[Request], Any]:
    def _get(request: Request) -> Any:
        value = getattr(request.app.state, name, None)
        if value is None:
            raise RuntimeError(f"Gateway component '{name}' is not initialised.")
        return value

    return _get


get_settings = _component("settings")
get_ticketmaster = _component("ticketmaster")
get_geohash_resolver = _component("resolve_geohash")
get_favorites = _component("favorites")


async def _gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    if isinstance(exc, UpstreamError):
        logger.error("%s %s failed upstream: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=_error_body(INTERNAL_ERROR_MESSAGE))
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=_error_body("Invalid request.", errors=jsonable_encoder(exc.errors())),
    )


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=_error_body(INTERNAL_ERROR_MESSAGE))


def create_app(
    settings: Optional[Settings] = None,
    *,
    favorites: Optional[FavoritesStore] = None,
    ticketmaster: Optional[TicketmasterClient] = None,
    resolve_geohash: Optional[GeohashResolver] = None,
) -> FastAPI:
    """
    Composition root. Anything not injected is built from settings at startup
    (settings themselves are loaded from the environment if not given).
    """
    app = FastAPI(title="Event Gateway API", lifespan=_lifespan)
    app.state.settings = settings
    app.state.favorites = favorites
    app.state.ticketmaster = ticketmaster
    app.state.resolve_geohash = resolve_geohash
    if settings is None:
        load_env_file(DEFAULT_ENV_FILE)
    else:
        # Components that need no I/O are built eagerly so tests can skip the lifespan.
        if ticketmaster is None:
            app.state.ticketmaster = TicketmasterClient(settings.ticketmaster_api_key)
        if resolve_geohash is None:
            app.state.resolve_geohash = make_geohash_resolver(settings.ipinfo_token)

    origins = settings.cors_origins if settings is not None else cors_origins_from_env()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(GatewayError, _gateway_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    # --- Ticketmaster proxy ---

    @app.get("/api/suggest")
    def suggest(
        keyword: Optional[str] = None,
        ticketmaster: TicketmasterClient = Depends(get_ticketmaster),
    ) -> list[dict[str, Any]]:
        return ticketmaster.suggest(keyword)

    @app.post("/api/events/search")
    def search_events(
        req: SearchRequest,
        settings: Settings = Depends(get_settings),
        ticketmaster: TicketmasterClient = Depends(get_ticketmaster),
        resolve_geohash: GeohashResolver = Depends(get_geohash_resolver),
    ) -> list[dict[str, Any]]:
        params = build_event_query(
            req,
            api_key=settings.ticketmaster_api_key,
            resolve_geohash=resolve_geohash,
        )
        return ticketmaster.search(params)

    @app.get("/api/events/{event_id}")
    def get_event(
        event_id: str,
        ticketmaster: TicketmasterClient = Depends(get_ticketmaster),
    ) -> dict[str, Any]:
        return ticketmaster.get_event(event_id)

    # --- Favorites (MongoDB) ---

    @app.get("/api/favorites", response_model=list[Favorite], response_model_exclude_none=True)
    def list_favorites(favorites: FavoritesStore = Depends(get_favorites)) -> list[Favorite]:
        return favorites.list()

    @app.post("/api/favorites", status_code=201, response_model=Favorite, response_model_exclude_none=True)
    def add_favorite(
        favorite: Favorite,
        favorites: FavoritesStore = Depends(get_favorites),
    ) -> Favorite:
        return favorites.add(favorite)

    @app.delete("/api/favorites/{event_id}", status_code=204)
    def remove_favorite(
        event_id: str,
        favorites: FavoritesStore = Depends(get_favorites),
    ) -> Response:
        favorites.remove(event_id)
        return Response(status_code=204)


app = create_app()
