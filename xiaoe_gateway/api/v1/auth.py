"""Account endpoints: register, login, balance lookup"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from xiaoe_gateway.api.v1.schemas import AuthResponse, Credentials, UserResponse, UserSchema
from xiaoe_gateway.api.dependencies import get_request_id
from xiaoe_gateway.config import settings
from xiaoe_gateway.domain.exceptions import UserExistsError
from xiaoe_gateway.domain.models import User
from xiaoe_gateway.infrastructure.database.session import get_db
from xiaoe_gateway.infrastructure.database.repositories import UserRepository
from xiaoe_gateway.infrastructure.security.passwords import (
    MAX_PASSWORD_BYTES,
    hash_password,
    password_fits,
    verify_password,
)

router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(body: Credentials, request: Request, db: Session = Depends(get_db)):
    """Create an account with the starting credit grant"""
    request_id = get_request_id(request)
    username = body.username.strip()
    if not username or not body.password:
        raise HTTPException(status_code=400, detail="Username and password are required")
    if not password_fits(body.password):
        raise HTTPException(status_code=400, detail=f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

    try:
        user = UserRepository(db).create(
            User(username=username, password_hash=hash_password(body.password), credits=settings.starting_credits)
        )
        db.commit()
    except UserExistsError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Username already exists")
    except Exception as e:
        db.rollback()
        logging.error(f"Registration failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Registration failed")

    logging.info("User registered", extra={"request_id": request_id, "username": username})
    return AuthResponse(message="Registration successful", user=UserSchema(username=user.username, credits=user.credits))


@router.post("/login", response_model=AuthResponse)
def login(body: Credentials, request: Request, db: Session = Depends(get_db)):
    """Check credentials and return the current balance"""
    user = UserRepository(db).get(body.username.strip()) if body.username else None
    if user is None or not body.password or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid username or password")

    logging.info("User logged in", extra={"request_id": get_request_id(request), "username": user.username})
    return AuthResponse(message="Login successful", user=UserSchema(username=user.username, credits=user.credits))


@router.get("/user/{username}", response_model=UserResponse)
def get_user(username: str, db: Session = Depends(get_db)):
    """Current balance for a user"""
    user = UserRepository(db).get(username)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return UserResponse(user=UserSchema(username=user.username, credits=user.credits))
