"""FastAPI application exposing registration, login and the contact inbox."""
from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Type

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import AuthResult, AuthService
from .contacts import ContactService
from .database import Database
from .errors import ServiceError
from .models import ContactMessage, User
from .security import AdminPrincipal, TokenIssuer

logger = logging.getLogger("contactdesk.api")

STATIC_DIR = Path(__file__).resolve().parent / "static"

_FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class RegisterRequest(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ContactRequest(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None
    service_interest: Optional[str] = None
    message: Optional[str] = None


class RenameContactRequest(BaseModel):
    full_name: Optional[str] = None


class UserResponse(BaseModel):
    id: int
    full_name: str
    email: str
    role: str


class AuthResponse(BaseModel):
    message: str
    user: UserResponse
    token: str


class ContactResponse(BaseModel):
    id: int
    full_name: str
    email: str
    service_interest: Optional[str]
    message: str
    created_at: datetime


class ContactCreatedResponse(BaseModel):
    message: str
    contactId: int


class ContactUpdatedResponse(BaseModel):
    message: str
    contact: ContactResponse


class ContactDeletedResponse(BaseModel):
    message: str
    deletedId: int


def _user_to_response(user: User) -> UserResponse:
    return UserResponse(id=user.id, full_name=user.full_name, email=user.email, role=user.role.value)


def _auth_to_response(result: AuthResult, message: str) -> AuthResponse:
    return AuthResponse(message=message, user=_user_to_response(result.user), token=result.token)


def _contact_to_response(contact: ContactMessage) -> ContactResponse:
    return ContactResponse(
        id=contact.id,
        full_name=contact.full_name,
        email=contact.email,
        service_interest=contact.service_interest,
        message=contact.message,
        created_at=contact.created_at,
    )


def _invalid_body(detail: str) -> RequestValidationError:
    return RequestValidationError([{"type": "value_error", "loc": ("body",), "msg": detail, "input": None}])


class RequestBody:
    """Dependency reading a request model from a JSON body or an HTML form post.

    An empty body yields a model with every field unset so the services can
    report which fields are missing.
    """

    def __init__(self, model: Type[BaseModel]) -> None:
        self._model = model

    async def __call__(self, request: Request) -> BaseModel:
        content_type = request.headers.get("content-type", "").split(";", 1)[0].strip().lower()
        data: Any
        if content_type in _FORM_CONTENT_TYPES:
            form = await request.form()
            data = {key: value for key, value in form.items() if isinstance(value, str)}
        else:
            body = await request.body()
            if not body.strip():
                data = {}
            else:
                try:
                    data = json.loads(body)
                except ValueError as exc:
                    raise _invalid_body("Body is not valid JSON.") from exc

        if not isinstance(data, dict):
            raise _invalid_body("Body must be an object.")

        try:
            return self._model.model_validate(data)
        except PydanticValidationError as exc:
            raise RequestValidationError(exc.errors()) from exc


register_body = RequestBody(RegisterRequest)
login_body = RequestBody(LoginRequest)
contact_body = RequestBody(ContactRequest)
rename_body = RequestBody(RenameContactRequest)


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as ``{"message": ...}`` with the matching status code."""

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message}, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.debug("Rejected malformed request to %s: %s", request.url.path, exc.errors())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": "Invalid request body."},
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error while serving %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Internal server error."},
        )


def register_api_routes(
    app: FastAPI,
    auth_service: AuthService,
    contact_service: ContactService,
) -> None:
    """Expose the JSON API endpoints on the provided FastAPI application."""

    router = APIRouter(prefix="/api")
    require_admin = AdminPrincipal(auth_service)

    @router.post("/register", status_code=status.HTTP_201_CREATED, response_model=AuthResponse)
    def register(payload: RegisterRequest = Depends(register_body)) -> AuthResponse:
        result = auth_service.register(payload.full_name, payload.email, payload.password)
        return _auth_to_response(result, "User registered successfully.")

    @router.post("/login", response_model=AuthResponse)
    def login(payload: LoginRequest = Depends(login_body)) -> AuthResponse:
        result = auth_service.login(payload.email, payload.password)
        return _auth_to_response(result, "Login successful.")

    @router.post("/contact", status_code=status.HTTP_201_CREATED, response_model=ContactCreatedResponse)
    def submit_contact(payload: ContactRequest = Depends(contact_body)) -> ContactCreatedResponse:
        contact = contact_service.submit(
            payload.full_name,
            payload.email,
            payload.message,
            service_interest=payload.service_interest,
        )
        return ContactCreatedResponse(message="Message sent successfully.", contactId=contact.id)

    @router.get("/admin/contacts", response_model=List[ContactResponse])
    def list_contacts(actor: User = Depends(require_admin)) -> List[ContactResponse]:
        return [_contact_to_response(contact) for contact in contact_service.list_all(actor)]

    @router.get("/admin/contacts/{contact_id}", response_model=ContactResponse)
    def get_contact(contact_id: str, actor: User = Depends(require_admin)) -> ContactResponse:
        return _contact_to_response(contact_service.get_one(actor, contact_id))

    @router.put("/contacts/{contact_id}", response_model=ContactUpdatedResponse)
    def rename_contact(
        contact_id: str,
        payload: RenameContactRequest = Depends(rename_body),
        actor: User = Depends(require_admin),
    ) -> ContactUpdatedResponse:
        contact = contact_service.rename(actor, contact_id, payload.full_name)
        return ContactUpdatedResponse(
            message="Contact name updated successfully.",
            contact=_contact_to_response(contact),
        )

    @router.delete("/contacts/{contact_id}", response_model=ContactDeletedResponse)
    def delete_contact(contact_id: str, actor: User = Depends(require_admin)) -> ContactDeletedResponse:
        deleted_id = contact_service.delete(actor, contact_id)
        return ContactDeletedResponse(message="Contact message deleted successfully.", deletedId=deleted_id)

    app.include_router(router)


def register_site_routes(app: FastAPI) -> None:
    """Serve the static front page and its assets."""

    @app.get("/", include_in_schema=False)
    async def index() -> FileResponse:
        return FileResponse(STATIC_DIR / "index.html", media_type="text/html")

    @app.get("/healthz")
    async def healthcheck() -> dict:
        return {"status": "ok"}

    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")


def create_app(*, database: Database, tokens: TokenIssuer) -> FastAPI:
    """Instantiate the FastAPI application around an initialised ``database``.

    ``contactdesk.application.create_application`` builds both collaborators
    from settings, including the seeded administrator account.
    """

    auth_service = AuthService(database, tokens)
    contact_service = ContactService(database)

    app = FastAPI(
        title="contactdesk",
        version="0.1.0",
        description="Registration, login and contact inbox for the marketing site.",
    )
    app.state.database = database
    app.state.auth_service = auth_service
    app.state.contact_service = contact_service

    register_exception_handlers(app)
    register_api_routes(app, auth_service, contact_service)
    register_site_routes(app)

    return app


__all__ = ["create_app", "register_api_routes", "register_exception_handlers"]
