import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from jose import JWTError

from core.security import verify_password, hash_password, create_token_pair, decode_token
from dependencies.auth import get_current_owner
from dependencies.workspace import get_registry
import db.mongo as mongo
from models.owner import Owner
from schemas.auth import SignupRequest, TokenPair, TokenRefreshRequest, UserOut
from services import users as user_service
from services.workspace import WorkspaceRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_database() -> None:
    if not mongo.is_connected():
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database not ready")


@router.post("/anonymous", response_model=TokenPair)
async def sign_in_anonymously():
    """Start a session under a fresh anonymous owner id."""
    owner_id = f"anon-{uuid.uuid4().hex}"
    logger.info("Issued anonymous identity %s", owner_id)
    return {**create_token_pair(owner_id, anonymous=True), "owner_id": owner_id, "anonymous": True}


@router.post("/signup", response_model=UserOut, status_code=201)
async def signup(payload: SignupRequest):
    _require_database()
    existing = await user_service.find_by_email_or_username(payload.email)
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")
    existing = await user_service.find_by_email_or_username(payload.username)
    if existing:
        raise HTTPException(status_code=400, detail="Username already taken")

    doc = await user_service.create_user({
        "username": payload.username,
        "email": payload.email,
        "hashed_password": hash_password(payload.password),
    })
    return {"id": str(doc["_id"]), "username": doc["username"], "email": doc["email"]}


@router.post("/login", response_model=TokenPair)
async def login(form_data: OAuth2PasswordRequestForm = Depends()):
    _require_database()
    user = await user_service.find_by_email_or_username(form_data.username)
    if not user or not user.get("hashed_password"):
        raise HTTPException(status_code=400, detail="Invalid credentials")
    if not verify_password(form_data.password, user["hashed_password"]):
        raise HTTPException(status_code=400, detail="Invalid credentials")
    if not user.get("isActive", True):
        raise HTTPException(status_code=403, detail="User is deactivated")

    owner_id = str(user["_id"])
    return {**create_token_pair(owner_id), "owner_id": owner_id}


@router.post("/refresh", response_model=TokenPair)
async def refresh_token(payload: TokenRefreshRequest):
    try:
        decoded = decode_token(payload.refresh_token)
        if decoded.get("type") != "refresh":
            raise HTTPException(status_code=401, detail="Invalid refresh token")
        owner_id = decoded.get("sub")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    if decoded.get("anon"):
        return {**create_token_pair(owner_id, anonymous=True), "owner_id": owner_id, "anonymous": True}

    _require_database()
    user = await user_service.get_user_by_id(owner_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.get("isActive", True):
        raise HTTPException(status_code=403, detail="User is deactivated")
    return {**create_token_pair(owner_id), "owner_id": owner_id}


@router.post("/logout")
async def logout(
    owner: Owner = Depends(get_current_owner),
    registry: WorkspaceRegistry = Depends(get_registry),
):
    """Tear down the owner's in-process session; documents stay in the store."""
    registry.discard(owner.id)
    return {"success": True, "message": "Signed out"}
