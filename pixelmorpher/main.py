from fastapi import FastAPI, Depends, HTTPException, Request, Response, Query, UploadFile, File, Body
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse, JSONResponse
from fastapi.routing import APIRouter
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import asyncio
import logging
from typing import Optional, Dict, Any, Literal
from pydantic import BaseModel, ValidationError
from starlette.middleware.sessions import SessionMiddleware

from pixelmorpher import __version__

# Database
from pixelmorpher.database import Database

# Authentication
from pixelmorpher.auth.security import get_current_user, create_access_token
from pixelmorpher.auth.google_oauth import oauth

# Models
from pixelmorpher.models.user import User
from pixelmorpher.models.schemas import UserCreate, UserUpdate, UserOut, TransformationTypeKey

# Actions
from pixelmorpher.actions import image_actions, user_actions
from pixelmorpher.actions.result import ActionContext, ActionResult

# Forms
from pixelmorpher.forms import FormRegistry, TransformationForm

# Services
from pixelmorpher.services.cloudinary_service import cloudinary_service
from pixelmorpher.services.redis_service import redis_service

from pixelmorpher.errors import (
    PixelMorpherError,
    NotFoundError,
    UnauthorizedError,
    ConfigurationError,
    FormStateError,
)

# Config
from pixelmorpher.config import settings

# Setup Logger
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("pixelmorpher")

ERROR_STATUS = {
    NotFoundError: 404,
    UnauthorizedError: 403,
    FormStateError: 409,
    ConfigurationError: 500,
}


def error_status(error: Exception) -> int:
    for kind, code in ERROR_STATUS.items():
        if isinstance(error, kind):
            return code
    if isinstance(error, ValidationError):
        return 400
    return 500


def raise_for_result(result: ActionResult):
    """Return the result value or raise the matching HTTPException"""
    if not result.ok:
        raise HTTPException(status_code=error_status(result.error), detail=result.message)
    return result.value


def get_context(request: Request) -> ActionContext:
    return request.app.state.context


def get_forms(request: Request) -> FormRegistry:
    return request.app.state.forms


def mark_fresh(ctx: ActionContext, path: str, response: Response):
    """Consume the revalidation marker for ``path``"""
    if ctx.revalidator.consume_revalidation(path):
        response.headers["Cache-Control"] = "no-cache"


# Lifespan events to handle startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("PixelMorpher starting up...")
    settings.validate_required()

    database: Database = app.state.database
    await database.connect()

    if app.state.context.revalidator.ping():
        logger.info("Redis connected successfully")
    else:
        logger.warning("Redis connection failed. Page revalidation will not work.")

    yield

    logger.info("PixelMorpher shutting down...")
    await database.close()


# API Routers
auth_router = APIRouter(prefix="/auth", tags=["Authentication"])
users_router = APIRouter(prefix="/users", tags=["Users"])
pages_router = APIRouter(tags=["Pages"])
forms_router = APIRouter(prefix="/forms", tags=["Transformation Forms"])
health_router = APIRouter(prefix="/health", tags=["Health"])

# =============================================================================
# AUTHENTICATION ROUTES
# =============================================================================

@auth_router.get("/google/login")
async def google_login(request: Request):
    """Initiate Google OAuth login"""
    redirect_uri = request.url_for("google_callback")
    return await oauth.google.authorize_redirect(request, redirect_uri)


@auth_router.get("/google/callback")
async def google_callback(request: Request, ctx: ActionContext = Depends(get_context)):
    """Handle Google OAuth callback, creating the user on first sign-in"""
    try:
        token = await oauth.google.authorize_access_token(request)
        user_info = token.get("userinfo")
        if not user_info:
            raise HTTPException(status_code=400, detail="Failed to get user info from Google")

        result = await user_actions.get_user_by_auth_id(ctx, user_info["sub"])
        if not result.ok and isinstance(result.error, NotFoundError):
            new_user = UserCreate(
                auth_id=user_info["sub"],
                email=user_info["email"],
                username=user_info.get("name", user_info["email"].split("@")[0]),
                first_name=user_info.get("given_name"),
                last_name=user_info.get("family_name"),
                photo=user_info.get("picture"),
            )
            result = await user_actions.create_user(ctx, new_user, credit_balance=settings.default_credit_balance)
        user = raise_for_result(result)

        access_token = create_access_token(data={"sub": str(user["id"])})
        return RedirectResponse(url=f"/?token={access_token}")

    except Exception as e:
        logger.error(f"Google callback error: {e}")
        return RedirectResponse(url="/?error=auth_failed")

# =============================================================================
# USER ROUTES
# =============================================================================

@users_router.get("/me", response_model=UserOut)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current user information"""
    return current_user


@users_router.put("/me", response_model=UserOut)
async def update_current_user(
    payload: UserUpdate,
    current_user: User = Depends(get_current_user),
    ctx: ActionContext = Depends(get_context),
):
    """Update profile fields of the current user"""
    return raise_for_result(await user_actions.update_user(ctx, current_user.id, payload))

# =============================================================================
# PAGE ROUTES
# =============================================================================

@pages_router.get("/")
async def home(
    response: Response,
    page: int = Query(1, ge=1),
    query: str = Query(""),
    ctx: ActionContext = Depends(get_context),
):
    """Recent images across all users, optionally filtered by title"""
    mark_fresh(ctx, "/", response)
    return raise_for_result(await image_actions.get_all_images(ctx, page=page, search_query=query))


@pages_router.get("/profile")
async def profile(
    response: Response,
    page: int = Query(1, ge=1),
    current_user: User = Depends(get_current_user),
    ctx: ActionContext = Depends(get_context),
):
    """The current user's images and credit balance"""
    mark_fresh(ctx, "/profile", response)
    images = raise_for_result(await image_actions.get_user_images(ctx, current_user.id, page=page))
    return {
        "credit_balance": current_user.credit_balance,
        "images": images,
    }


@pages_router.get("/transformations/{image_id}")
async def image_details(image_id: int, response: Response, ctx: ActionContext = Depends(get_context)):
    """Image detail view"""
    mark_fresh(ctx, f"/transformations/{image_id}", response)
    return raise_for_result(await image_actions.get_image_by_id(ctx, image_id))


@pages_router.post("/transformations/{image_id}/delete")
async def delete_image(
    image_id: int,
    current_user: User = Depends(get_current_user),
    ctx: ActionContext = Depends(get_context),
):
    """Delete one of the user's images and return to the home page, whatever the outcome"""
    found = await image_actions.get_image_by_id(ctx, image_id)
    if not found.ok:
        return RedirectResponse(url="/", status_code=303)

    image = found.value
    if image["author"]["id"] != current_user.id:
        logger.warning(f"User {current_user.id} tried to delete image {image_id} owned by user {image['author']['id']}")
        return RedirectResponse(url="/", status_code=303)

    result = await image_actions.delete_image(ctx, image_id)
    if result.ok:
        try:
            await asyncio.to_thread(ctx.media.destroy_image, image["public_id"])
        except Exception as e:
            logger.error(f"Cloudinary cleanup failed for {image['public_id']}: {e}")
    return RedirectResponse(url=result.redirect_to, status_code=303)

# =============================================================================
# TRANSFORMATION FORM ROUTES
# =============================================================================

class FormCreate(BaseModel):
    action: Literal["Add", "Update"] = "Add"
    type: TransformationTypeKey
    image_id: Optional[int] = None


class FieldChange(BaseModel):
    name: Literal["title", "aspect_ratio", "prompt", "color"]
    value: str


@forms_router.post("")
async def create_form(
    payload: FormCreate,
    current_user: User = Depends(get_current_user),
    ctx: ActionContext = Depends(get_context),
    forms: FormRegistry = Depends(get_forms),
):
    """Open a transformation form for a new image or one the user owns.

    An Update form always uses the stored image's transformation type.
    """
    data = None
    transformation_type = payload.type
    if payload.action == "Update":
        if payload.image_id is None:
            raise HTTPException(status_code=400, detail="image_id is required to update an image")
        data = raise_for_result(await image_actions.get_image_by_id(ctx, payload.image_id))
        if data["author"]["id"] != current_user.id:
            raise HTTPException(status_code=403, detail="Unauthorized")
        transformation_type = data["transformation_type"]

    form = TransformationForm(
        ctx,
        action=payload.action,
        user_id=current_user.id,
        type=transformation_type,
        credit_balance=current_user.credit_balance,
        data=data,
        config=data["config"] if data else None,
        credit_fee=settings.credit_fee,
        debounce_seconds=settings.debounce_seconds,
    )
    form_id = forms.add(current_user.id, form)
    logger.info(f"Opened {payload.action} form {form_id} ({transformation_type}) for user {current_user.id}")
    return {"id": form_id, **form.snapshot()}


@forms_router.get("/{form_id}")
def get_form(
    form_id: str,
    current_user: User = Depends(get_current_user),
    forms: FormRegistry = Depends(get_forms),
):
    return {"id": form_id, **forms.get(form_id, current_user.id).snapshot()}


@forms_router.patch("/{form_id}/fields")
def change_field(
    form_id: str,
    change: FieldChange,
    current_user: User = Depends(get_current_user),
    forms: FormRegistry = Depends(get_forms),
):
    form = forms.get(form_id, current_user.id)
    form.set_field(change.name, change.value)
    return {"id": form_id, **form.snapshot()}


@forms_router.post("/{form_id}/upload")
async def upload_image(
    form_id: str,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    ctx: ActionContext = Depends(get_context),
    forms: FormRegistry = Depends(get_forms),
):
    """Upload the source image for a form"""
    form = forms.get(form_id, current_user.id)
    try:
        logger.info(f"Upload Request - User: {current_user.email}, File: {file.filename}, Content-Type: {file.content_type}")
        if not file.content_type or not file.content_type.startswith("image/"):
            raise HTTPException(status_code=400, detail=f"File must be an image. Received: {file.content_type}")

        file_content = await file.read()
        if len(file_content) == 0:
            raise HTTPException(status_code=400, detail="Uploaded file is empty")

        upload_result = await asyncio.to_thread(
            ctx.media.upload_image,
            file_content,
            public_id=f"user_{current_user.id}_{datetime.now().strftime('%Y%m%d_%H%M%S')}",
        )
        logger.info(f"Cloudinary upload successful: {upload_result['public_id']}")
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Upload error: {e.__class__.__name__}: {e}")
        raise HTTPException(status_code=502, detail=f"Upload failed: {str(e)}")

    form.set_image({
        "public_id": upload_result["public_id"],
        "secure_url": upload_result["secure_url"],
        "width": upload_result.get("width"),
        "height": upload_result.get("height"),
    })
    return {"id": form_id, **form.snapshot()}


@forms_router.post("/{form_id}/transform")
async def apply_transformation(
    form_id: str,
    current_user: User = Depends(get_current_user),
    forms: FormRegistry = Depends(get_forms),
):
    """Fold the pending transformation into the config and render a preview"""
    form = forms.get(form_id, current_user.id)
    result = await form.apply_transformation()
    credit_result = await form.wait_for_credit_update()
    if credit_result is not None and not credit_result.ok:
        logger.error(f"Credit update failed for user {current_user.id}: {credit_result.message}")
    if not result.ok:
        raise HTTPException(status_code=502, detail=f"Transformation failed: {result.message}")
    return {"id": form_id, **form.snapshot()}


@forms_router.post("/{form_id}/save")
async def save_form(
    form_id: str,
    values: Optional[Dict[str, Any]] = Body(None),
    current_user: User = Depends(get_current_user),
    forms: FormRegistry = Depends(get_forms),
):
    """Persist the image and redirect to its detail view.

    A successful save ends the workflow, so the form is discarded.
    """
    form = forms.get(form_id, current_user.id)
    result = await form.submit(values)
    raise_for_result(result)
    forms.discard(form_id, current_user.id)
    return RedirectResponse(url=result.redirect_to, status_code=303)


@forms_router.delete("/{form_id}")
def discard_form(
    form_id: str,
    current_user: User = Depends(get_current_user),
    forms: FormRegistry = Depends(get_forms),
):
    forms.discard(form_id, current_user.id)
    return {"message": "Form discarded"}

# =====================================================================
# HEALTH ROUTES
# =====================================================================

@health_router.get("/redis")
def redis_health(ctx: ActionContext = Depends(get_context)):
    if ctx.revalidator.ping():
        return {"status": "healthy", "redis": "connected"}
    else:
        return {"status": "unhealthy", "redis": "disconnected"}


@health_router.get("/cloudinary")
def cloudinary_health(ctx: ActionContext = Depends(get_context)):
    if ctx.media.ping():
        return {"status": "healthy", "cloudinary": "connected"}
    return {"status": "unhealthy", "cloudinary": "disconnected"}


@health_router.get("/")
def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
    }

# =========================
# ERROR HANDLERS
# =========================

async def pixelmorpher_error_handler(request: Request, exc: PixelMorpherError):
    return JSONResponse(status_code=error_status(exc), content={"detail": str(exc)})


async def custom_500_handler(request: Request, exc):
    logger.error(f"Internal Server Error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": "An unexpected error occurred."},
    )


def create_app(database: Database = None, revalidator=None, media=None) -> FastAPI:
    app = FastAPI(
        title="PixelMorpher",
        description="AI powered pixel art morphing",
        version=__version__,
        lifespan=lifespan,
    )

    database = database or Database(settings.patched_database_url)
    app.state.database = database
    app.state.context = ActionContext(
        database=database,
        revalidator=revalidator or redis_service,
        media=media or cloudinary_service,
    )
    app.state.forms = FormRegistry()

    # Session middleware keeps the OAuth state between login and callback
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.secret_key,
        max_age=60 * 60 * 24 * 7,  # 1 week
        same_site="lax",
        https_only=True,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
    )

    # Register all routers
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(pages_router)
    app.include_router(forms_router)
    app.include_router(health_router)

    app.add_exception_handler(PixelMorpherError, pixelmorpher_error_handler)
    app.add_exception_handler(500, custom_500_handler)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "pixelmorpher.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level="info",
    )
