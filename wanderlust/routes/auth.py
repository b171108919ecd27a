import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from ..schemas import ApiResponse, AuthData, UserData, UserRegister, UserLogin, UserUpdate, UserResponse
from ..models import User
from ..database import get_db
from ..security import hash_password, verify_password, create_access_token, generate_verification_token
from ..config import EMPLOYEE_SIGNUP_CODE
from ..errors import AuthenticationError, AuthorizationError, ConflictError, NotFoundError
from ..middleware import Principal, get_current_principal

logger = logging.getLogger(__name__)

router = APIRouter()


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found", error="USER_NOT_FOUND")
    return user


@router.post("/register", response_model=ApiResponse[AuthData], status_code=status.HTTP_201_CREATED)
def register(user: UserRegister, db: Session = Depends(get_db)):
    existing_user = db.query(User).filter(User.email == user.email).first()
    if existing_user:
        raise ConflictError("User with this email already exists", error="USER_EXISTS")

    # Staff accounts need the shared signup code
    role = "customer"
    if user.role in ("employee", "admin"):
        if not EMPLOYEE_SIGNUP_CODE or user.employeeSignupCode != EMPLOYEE_SIGNUP_CODE:
            raise AuthorizationError("Invalid employee signup code", error="INVALID_SIGNUP_CODE")
        role = user.role

    new_user = User(
        email=user.email,
        hashedPassword=hash_password(user.password),
        firstName=user.firstName,
        lastName=user.lastName,
        phone=user.phone,
        role=role,
        isVerified=role == "admin",
        verificationToken=None if role == "admin" else generate_verification_token(),
        preferences={},
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    logger.info("Registered user %s with role %s", new_user.id, new_user.role)

    return ApiResponse(
        message="User registered successfully",
        data=AuthData(
            user=UserResponse.model_validate(new_user),
            token=create_access_token(new_user),
            needsVerification=not new_user.isVerified,
        ),
    )


@router.post("/login", response_model=ApiResponse[AuthData])
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    db_user = db.query(User).filter(User.email == credentials.email).first()
    if not db_user or not verify_password(credentials.password, db_user.hashedPassword):
        raise AuthenticationError("Invalid email or password", error="INVALID_CREDENTIALS")
    return ApiResponse(
        message="Login successful",
        data=AuthData(user=UserResponse.model_validate(db_user), token=create_access_token(db_user)),
    )


@router.get("/profile", response_model=ApiResponse[UserData])
def get_profile(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    user = get_user_or_404(db, principal.userId)
    return ApiResponse(message="Profile retrieved successfully", data=UserData(user=UserResponse.model_validate(user)))


@router.put("/profile", response_model=ApiResponse[UserData])
def update_profile(
    update: UserUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    user = get_user_or_404(db, principal.userId)
    for field, value in update.model_dump(exclude_unset=True).items():
        if value is None and field in ("firstName", "lastName"):
            continue
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return ApiResponse(message="Profile updated successfully", data=UserData(user=UserResponse.model_validate(user)))


@router.post("/logout", response_model=ApiResponse[None])
def logout(principal: Principal = Depends(get_current_principal)):
    # Tokens are stateless; the client drops its copy
    return ApiResponse(message="Logged out successfully")
