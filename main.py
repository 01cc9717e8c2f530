import time
import logging
from datetime import datetime
from typing import Optional

import pytz
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException

from api_errors import ApiError, ValidationError
from app_config import Settings, is_railway_environment, load_settings
from schema_migration import fix_database_schema, import_thoughts_from_json
from thought_models import CredentialsRequest, ThoughtCreateRequest, ThoughtUpdateRequest, User
from thought_store import (
    JsonFileThoughtStore, JsonFileUserStore, SqliteThoughtStore, SqliteUserStore,
    ThoughtStore, UserStore
)
from thoughts_service import ThoughtService
from user_auth import TokenManager, UserService, get_current_user, get_optional_user

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


def build_stores(settings: Settings):
    """Construct the storage backend selected by configuration"""
    if settings.use_database:
        return SqliteThoughtStore(settings.database_path), SqliteUserStore(settings.database_path)
    return JsonFileThoughtStore(settings.thoughts_file), JsonFileUserStore(settings.users_file)


def get_thought_service(request: Request) -> ThoughtService:
    return request.app.state.thought_service


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def _error_response(request: Request, error: ApiError) -> JSONResponse:
    settings: Settings = request.app.state.settings
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_dict(expose_internal=not settings.is_production)
    )


def create_app(settings: Optional[Settings] = None,
               thought_store: Optional[ThoughtStore] = None,
               user_store: Optional[UserStore] = None) -> FastAPI:
    """Build the Happy Thoughts API with its storage backend injected"""
    settings = settings or load_settings()
    logging.getLogger().setLevel(settings.log_level)

    if thought_store is None or user_store is None:
        default_thoughts, default_users = build_stores(settings)
        thought_store = thought_store or default_thoughts
        user_store = user_store or default_users

    app = FastAPI(title="Happy Thoughts API", version=API_VERSION)
    app.state.settings = settings
    app.state.thought_service = ThoughtService(
        thought_store,
        min_length=settings.message_min_length,
        max_length=settings.message_max_length
    )
    app.state.user_service = UserService(
        user_store,
        TokenManager(settings.jwt_secret, settings.jwt_algorithm, settings.jwt_expires_days)
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept"],
    )

    if not settings.is_production:
        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            started = time.perf_counter()
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)")
            return response

    # ===== ERROR HANDLERS =====

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        if exc.status_code >= 500:
            logger.error(f"❌ {exc.message}: {exc.__cause__}")
        return _error_response(request, exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        fields = {
            ".".join(str(part) for part in err.get("loc", ())): err.get("msg", "invalid")
            for err in exc.errors()
        }
        return _error_response(request, ValidationError("Invalid request parameters", fields))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            logger.info(f"🔍 Unmatched request: {request.method} {request.url.path}")
            message = "The requested endpoint does not exist"
        else:
            message = str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"success": False, "message": message})

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.error(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={
            "success": False,
            "message": "An unexpected error occurred",
            "response": None if settings.is_production else str(exc)
        })

    # ===== STARTUP =====

    @app.on_event("startup")
    async def startup_event():
        logger.info("🚀 Starting Happy Thoughts API...")
        logger.info(f"📍 Environment: {'Railway' if is_railway_environment() else 'Local'} ({settings.environment})")
        logger.info(f"💾 Storage: {settings.storage_info()}")
        if settings.use_database:
            result = fix_database_schema(settings.database_path)
            if not result["success"]:
                logger.warning(f"⚠️ Schema check failed: {result.get('error')}")
            import_thoughts_from_json(app.state.thought_service.store, settings.thoughts_file)

    # ===== GENERAL =====

    @app.get("/")
    async def root():
        """Welcome message with the list of endpoints"""
        endpoints = [
            {"path": route.path, "methods": sorted(route.methods)}
            for route in app.routes
            if isinstance(route, APIRoute)
        ]
        return {
            "message": "Welcome to the Happy Thoughts API",
            "environment": settings.environment,
            "endpoints": endpoints
        }

    @app.get("/health")
    async def health_check(service: ThoughtService = Depends(get_thought_service)):
        """Health check with storage connectivity"""
        try:
            total = service.store.count()
        except ApiError as e:
            logger.error(f"Health check failed: {e.message}")
            return JSONResponse(status_code=500, content={
                "status": "unhealthy",
                "storage": settings.storage_info(),
                "error": e.public_message,
                "timestamp": datetime.now(pytz.UTC).isoformat()
            })
        return {
            "status": "healthy",
            "service": "happy-thoughts",
            "version": API_VERSION,
            "storage": settings.storage_info(),
            "stats": {"total_thoughts": total},
            "timestamp": datetime.now(pytz.UTC).isoformat()
        }

    # ===== THOUGHTS =====

    @app.get("/thoughts")
    async def list_thoughts(page: int = 1, limit: int = 10,
                            service: ThoughtService = Depends(get_thought_service)):
        """Paginated thoughts, newest first"""
        return service.paginate(page, limit).to_dict()

    @app.post("/thoughts", status_code=201)
    async def create_thought(request: ThoughtCreateRequest,
                             user: Optional[User] = Depends(get_optional_user),
                             service: ThoughtService = Depends(get_thought_service)):
        """Create a thought; tags are assigned automatically"""
        thought = service.create(request.message, owner=user.id if user else None)
        return thought.to_dict()

    @app.get("/thoughts/trending")
    async def trending_thoughts(service: ThoughtService = Depends(get_thought_service)):
        return [thought.to_dict() for thought in service.trending()]

    @app.get("/thoughts/tag/{tag}")
    async def thoughts_by_tag(tag: str, service: ThoughtService = Depends(get_thought_service)):
        return [thought.to_dict() for thought in service.by_tag(tag)]

    @app.post("/thoughts/auto-tag")
    async def auto_tag_thoughts(service: ThoughtService = Depends(get_thought_service)):
        """Assign tags to every thought that has none"""
        updated_count = service.backfill_tags()
        return {
            "message": f"Auto-generated tags for {updated_count} thoughts",
            "updatedCount": updated_count
        }

    @app.get("/thoughts/{thought_id}")
    async def get_thought(thought_id: str, service: ThoughtService = Depends(get_thought_service)):
        return service.get(thought_id).to_dict()

    @app.put("/thoughts/{thought_id}")
    async def update_thought(thought_id: str, request: ThoughtUpdateRequest,
                             user: User = Depends(get_current_user),
                             service: ThoughtService = Depends(get_thought_service)):
        """Update the caller's own thought"""
        thought = service.update(
            thought_id,
            request.message,
            tags=request.tags,
            preserve_tags=bool(request.preserve_tags),
            user_id=user.id
        )
        return thought.to_dict()

    @app.delete("/thoughts/{thought_id}")
    async def delete_thought(thought_id: str,
                             user: User = Depends(get_current_user),
                             service: ThoughtService = Depends(get_thought_service)):
        """Delete the caller's own thought"""
        thought = service.delete(thought_id, user_id=user.id)
        return {
            "success": True,
            "message": "Thought deleted successfully",
            "response": thought.to_dict()
        }

    @app.post("/thoughts/{thought_id}/like")
    async def like_thought(thought_id: str,
                           user: Optional[User] = Depends(get_optional_user),
                           service: ThoughtService = Depends(get_thought_service)):
        """Anonymous callers add a heart; signed-in callers toggle their like"""
        thought = service.like(thought_id, user_id=user.id if user else None)
        return thought.to_dict()

    # ===== TAGS =====

    @app.get("/tags")
    async def get_all_tags(service: ThoughtService = Depends(get_thought_service)):
        return service.all_tags()

    # ===== USERS =====

    @app.post("/users/signup", status_code=201)
    async def signup(request: CredentialsRequest, users: UserService = Depends(get_user_service)):
        session = users.register(request.username, request.password)
        return {"success": True, "response": session, "message": "User registered successfully"}

    @app.post("/users/signin")
    async def signin(request: CredentialsRequest, users: UserService = Depends(get_user_service)):
        session = users.login(request.username, request.password)
        return {"success": True, "response": session, "message": "Login successful"}

    @app.get("/users/liked-thoughts")
    async def liked_thoughts(user: User = Depends(get_current_user),
                             service: ThoughtService = Depends(get_thought_service)):
        thoughts = service.liked_by(user.id)
        return {
            "success": True,
            "data": [thought.to_dict() for thought in thoughts],
            "count": len(thoughts)
        }

    return app


app = create_app()
