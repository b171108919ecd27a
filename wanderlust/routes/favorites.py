from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session, joinedload

from ..database import get_db
from ..errors import ConflictError, NotFoundError
from ..middleware import Principal, get_current_principal
from ..models import Favorite
from ..schemas import ApiResponse, FavoriteCreate, FavoriteData, FavoriteListData, FavoriteResponse
from .hotels import get_active_hotel

router = APIRouter()


@router.get("", response_model=ApiResponse[FavoriteListData])
def list_favorites(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    favorites = db.query(Favorite).options(joinedload(Favorite.hotel)).filter(
        Favorite.userId == principal.userId,
    ).order_by(Favorite.createdAt.desc(), Favorite.id.desc()).all()
    return ApiResponse(
        message="Favorites retrieved successfully",
        data=FavoriteListData(favorites=[FavoriteResponse.model_validate(favorite) for favorite in favorites]),
    )


@router.post("", response_model=ApiResponse[FavoriteData], status_code=status.HTTP_201_CREATED)
def add_favorite(request: FavoriteCreate, principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    hotel = get_active_hotel(db, request.hotelId)
    existing = db.query(Favorite.id).filter(Favorite.userId == principal.userId, Favorite.hotelId == hotel.id).first()
    if existing:
        raise ConflictError("Hotel is already in your favorites", error="FAVORITE_EXISTS")

    favorite = Favorite(userId=principal.userId, hotelId=hotel.id, notes=request.notes)
    db.add(favorite)
    db.commit()
    db.refresh(favorite)
    return ApiResponse(message="Hotel added to favorites", data=FavoriteData(favorite=FavoriteResponse.model_validate(favorite)))


@router.delete("/{hotel_id}", response_model=ApiResponse[None])
def remove_favorite(hotel_id: int, principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    favorite = db.query(Favorite).filter(Favorite.userId == principal.userId, Favorite.hotelId == hotel_id).first()
    if not favorite:
        raise NotFoundError("Favorite not found", error="FAVORITE_NOT_FOUND")
    db.delete(favorite)
    db.commit()
    return ApiResponse(message="Hotel removed from favorites")
