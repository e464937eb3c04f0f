from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from mfg_inventory.common.response import SuccessResponse
from mfg_inventory.core.config import settings
from mfg_inventory.core.dependencies import get_current_principal, get_db
from mfg_inventory.core.security import create_access_token
from mfg_inventory.logger_config import logger
from mfg_inventory.models.user import UserStatus
from mfg_inventory.schemas.auth import LoginRequest, LoginResponse, Principal
from mfg_inventory.services.user_service import authenticate_user

router = APIRouter()


@router.post("/login")
def login(
    login_data: LoginRequest,
    db: Session = Depends(get_db)
):
    """
    Login endpoint - Authenticate user and return JWT token.
    """
    try:
        logger.info(f"Login attempt for email: {login_data.email}")

        user = authenticate_user(db, login_data.email, login_data.password)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Incorrect email or password"
            )
        if user.status == UserStatus.blocked:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Your account has been blocked"
            )

        access_token_expires = timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        access_token = create_access_token(
            data={"sub": user.email, "user_id": user.id,
                  "role": user.role.value},
            expires_delta=access_token_expires
        )

        logger.info(f"User {user.email} logged in successfully")

        principal = Principal.from_user(user)
        return SuccessResponse.send(
            data=LoginResponse(
                access_token=access_token,
                token_type="bearer",
                user=principal.model_dump(mode="json"),
            ),
            message="Login successful",
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error during login: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred during login"
        )


@router.get("/profile")
def profile(principal: Principal = Depends(get_current_principal)):
    """Current user as seen by the permission checks."""
    return SuccessResponse.send(data=principal, message="Profile fetched successfully")
