from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from pong_api.core import security
from pong_api.models import user as user_model
from pong_api.schemas import auth_schemas, user_schemas
from pong_api.services import auth_service, user_service
from pong_api.api.dependencies import get_db

router = APIRouter()


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register_endpoint(
    credentials: auth_schemas.Credentials,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    if user_service.is_username_taken(db, credentials.username):
        return _failure(status.HTTP_409_CONFLICT, "Username already taken")
    user = auth_service.register_local_user(db, credentials)
    session = auth_service.issue_session(response, request, user.username)
    return {"success": True, "data": session.model_dump()}


@router.post("/login")
async def login_endpoint(
    credentials: auth_schemas.Credentials,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    user = auth_service.authenticate_local_user(db, credentials.username, credentials.password)
    if user is None:
        return _failure(status.HTTP_401_UNAUTHORIZED, "Invalid username or password")
    session = auth_service.issue_session(response, request, user.username)
    return {"success": True, "data": session.model_dump()}


@router.post("/logout")
async def logout_endpoint(request: Request, response: Response):
    secure = security.is_secure_context(request.headers, request.url.scheme)
    response.headers.append("set-cookie", security.clear_session_cookie(secure))
    return {"success": True, "message": "Logged out"}


@router.get("/me")
async def me_endpoint(current_user: user_model.User = Depends(auth_service.get_current_user)):
    return {"success": True, "data": user_schemas.UserRead.model_validate(current_user).model_dump(mode="json")}


@router.post("/update")
async def update_user_endpoint(
    update: auth_schemas.UpdateUserRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    changes = update.model_dump(exclude_none=True)
    if len(changes) != 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide exactly one of newUsername, newPassword or newAvatar",
        )
    username = current_user.username

    if update.newUsername is not None:
        new_username = auth_service.validate_username(update.newUsername)
        if new_username == username:
            return {"success": True, "message": "Username unchanged"}
        if user_service.is_username_taken(db, new_username):
            return _failure(status.HTTP_409_CONFLICT, "Username already taken")
        user_service.update_username(db, username, new_username)
        # The old token names an account that no longer exists
        session = auth_service.issue_session(response, request, new_username)
        return {"success": True, "message": "Username updated", "data": session.model_dump()}

    if update.newPassword is not None:
        if current_user.provider != "local":
            return _failure(status.HTTP_400_BAD_REQUEST, "Password cannot be changed for GitHub accounts")
        user_service.update_password(db, username, security.get_password_hash(update.newPassword))
        return {"success": True, "message": "Password updated"}

    user_service.update_avatar(db, username, update.newAvatar)
    return {"success": True, "message": "Avatar updated"}
