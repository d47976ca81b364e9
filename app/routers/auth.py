from fastapi import APIRouter, HTTPException, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from db import get_database
from utils.app_utils import Token, create_access_token, authenticate_user, get_current_user

router = APIRouter()


@router.post("/login", response_model=Token)
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends(),
                                 database=Depends(get_database)):
    """
    Handles user authentication and generates JWT access token.
    This endpoint validates user credentials and issues a JWT token for authenticated sessions.
    Args:
        form_data (OAuth2PasswordRequestForm): Form containing username (email) and password
    Returns:
        dict: Contains the generated access token and token type
            {
                "access_token": str,
                "token_type": "bearer"
            }
    Raises:
        HTTPException: 401 Unauthorized if login credentials are invalid or the account is inactive
    """

    user = await authenticate_user(database, email=form_data.username, password=form_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid login details",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = create_access_token(payload={"sub": str(user["_id"]), "role": user.get("role", "user")})

    return {"access_token": token, "token_type": "bearer"}


@router.get("/me")
async def get_me(user_and_role: tuple = Depends(get_current_user)):
    """
    Returns the identity the core works with: user id and role.
    """
    user, role = user_and_role
    return {"user_id": str(user["_id"]), "email": user.get("email"), "role": role}
