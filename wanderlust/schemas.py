from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import Optional, List, Literal, Dict, Any, Generic, TypeVar
from datetime import date, datetime

T = TypeVar("T")

URL_PATTERN = r"^https?://\S+$"
TIME_PATTERN = r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$"

BookingStatus = Literal["pending", "confirmed", "cancelled", "completed"]
PaymentStatus = Literal["pending", "paid", "failed", "refunded"]
MessageStatus = Literal["open", "in_progress", "resolved", "closed"]
MessagePriority = Literal["low", "medium", "high", "urgent"]
MessageCategory = Literal["booking", "payment", "complaint", "general", "technical"]


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str
    data: Optional[T] = None


class Pagination(BaseModel):
    currentPage: int
    totalPages: int
    totalItems: int
    itemsPerPage: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(currentPage=page, totalPages=(total + limit - 1) // limit, totalItems=total, itemsPerPage=limit)


# User Schemas
class UserRegister(BaseModel):
    email: EmailStr = Field(..., max_length=255)
    password: str = Field(..., min_length=6, max_length=128, description="Password must be at least 6 characters")
    firstName: str = Field(..., min_length=1, max_length=100)
    lastName: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    role: Optional[Literal["customer", "employee", "admin"]] = None
    employeeSignupCode: Optional[str] = None


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, description="Password is required")


class UserUpdate(BaseModel):
    firstName: Optional[str] = Field(None, min_length=1, max_length=100)
    lastName: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    dateOfBirth: Optional[date] = None
    profileImage: Optional[str] = Field(None, max_length=500, pattern=URL_PATTERN)
    preferences: Optional[Dict[str, Any]] = None


class UserResponse(BaseModel):
    id: int
    email: EmailStr
    firstName: str
    lastName: str
    fullName: str
    phone: Optional[str] = None
    dateOfBirth: Optional[date] = None
    role: str
    isVerified: bool
    profileImage: Optional[str] = None
    preferences: Optional[Dict[str, Any]] = None
    createdAt: Optional[datetime] = None

    class Config:
        from_attributes = True


class AuthData(BaseModel):
    user: UserResponse
    token: str
    needsVerification: Optional[bool] = None


class UserData(BaseModel):
    user: UserResponse


# Hotel Schemas
class HotelBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    address: str = Field(..., min_length=1, max_length=500)
    city: str = Field(..., min_length=1, max_length=100)
    country: str = Field(..., min_length=1, max_length=100)
    postalCode: Optional[str] = Field(None, max_length=20)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    starRating: int = Field(..., ge=1, le=5)
    pricePerNight: float = Field(..., gt=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    amenities: List[str] = []
    images: List[str] = []
    checkInTime: str = Field("15:00", pattern=TIME_PATTERN)
    checkOutTime: str = Field("11:00", pattern=TIME_PATTERN)
    totalRooms: int = Field(10, ge=1)
    availableRooms: int = Field(10, ge=0)
    phoneNumber: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    website: Optional[str] = Field(None, max_length=500, pattern=URL_PATTERN)
    hotelbedsId: Optional[str] = Field(None, max_length=50)


class HotelCreate(HotelBase):
    @model_validator(mode="after")
    def check_rooms(self):
        if self.availableRooms > self.totalRooms:
            raise ValueError("availableRooms cannot exceed totalRooms")
        return self


class HotelUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    address: Optional[str] = Field(None, min_length=1, max_length=500)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    country: Optional[str] = Field(None, min_length=1, max_length=100)
    postalCode: Optional[str] = Field(None, max_length=20)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    starRating: Optional[int] = Field(None, ge=1, le=5)
    pricePerNight: Optional[float] = Field(None, gt=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    amenities: Optional[List[str]] = None
    images: Optional[List[str]] = None
    checkInTime: Optional[str] = Field(None, pattern=TIME_PATTERN)
    checkOutTime: Optional[str] = Field(None, pattern=TIME_PATTERN)
    totalRooms: Optional[int] = Field(None, ge=1)
    availableRooms: Optional[int] = Field(None, ge=0)
    phoneNumber: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    website: Optional[str] = Field(None, max_length=500, pattern=URL_PATTERN)
    hotelbedsId: Optional[str] = Field(None, max_length=50)
    isActive: Optional[bool] = None


class HotelResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    address: str
    city: str
    country: str
    fullAddress: str
    postalCode: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    starRating: int
    pricePerNight: float
    currency: str
    amenities: List[str] = []
    images: List[str] = []
    checkInTime: Optional[str] = None
    checkOutTime: Optional[str] = None
    hotelbedsId: Optional[str] = None
    isActive: bool
    totalRooms: int
    availableRooms: int
    phoneNumber: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    averageRating: Optional[float] = None
    reviewCount: int = 0
    createdAt: Optional[datetime] = None

    class Config:
        from_attributes = True


class HotelSummary(BaseModel):
    id: int
    name: str
    city: str
    country: str
    starRating: int
    pricePerNight: float
    currency: str
    images: List[str] = []

    class Config:
        from_attributes = True


class ReviewerSummary(BaseModel):
    id: int
    firstName: str
    lastName: str

    class Config:
        from_attributes = True


class ReviewResponse(BaseModel):
    id: int
    userId: int
    hotelId: int
    bookingId: Optional[int] = None
    rating: float
    title: Optional[str] = None
    comment: Optional[str] = None
    isVerified: bool
    isVisible: bool
    helpfulVotes: int
    responseFromHotel: Optional[str] = None
    responseDate: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    user: Optional[ReviewerSummary] = None

    class Config:
        from_attributes = True


class HotelDetail(HotelResponse):
    isFavorite: bool = False
    ratingDistribution: Dict[int, int] = {}
    reviews: List[ReviewResponse] = []


class HotelListData(BaseModel):
    hotels: List[HotelResponse]
    pagination: Pagination
    filters: Dict[str, Any]


class HotelData(BaseModel):
    hotel: HotelResponse


class HotelDetailData(BaseModel):
    hotel: HotelDetail


class ReviewListData(BaseModel):
    reviews: List[ReviewResponse]
    pagination: Pagination


class AvailabilityResponse(BaseModel):
    hotelId: int
    isAvailable: bool
    availableRooms: int
    requestedRooms: int
    pricePerNight: float
    currency: str
    numberOfNights: int
    totalPrice: float


# Booking Schemas
def _check_stay(check_in: date, check_out: date):
    if check_out <= check_in:
        raise ValueError("Check-out date must be after check-in date")
    if check_in < date.today():
        raise ValueError("Check-in date cannot be in the past")


class BookingCreate(BaseModel):
    hotelId: int = Field(..., gt=0)
    checkInDate: date
    checkOutDate: date
    numberOfGuests: int = Field(..., ge=1, le=20)
    numberOfRooms: int = Field(1, ge=1, le=10)
    contactEmail: EmailStr
    contactPhone: Optional[str] = Field(None, max_length=20)
    specialRequests: Optional[str] = Field(None, max_length=1000)
    guestNames: List[str] = Field([], max_length=20)

    @model_validator(mode="after")
    def check_dates(self):
        _check_stay(self.checkInDate, self.checkOutDate)
        return self


class BookingUpdate(BaseModel):
    checkInDate: Optional[date] = None
    checkOutDate: Optional[date] = None
    numberOfGuests: Optional[int] = Field(None, ge=1, le=20)
    numberOfRooms: Optional[int] = Field(None, ge=1, le=10)
    contactEmail: Optional[EmailStr] = None
    contactPhone: Optional[str] = Field(None, max_length=20)
    specialRequests: Optional[str] = Field(None, max_length=1000)
    guestNames: Optional[List[str]] = Field(None, max_length=20)

    @model_validator(mode="after")
    def check_dates(self):
        # Past check-ins are judged against the stored date by the booking manager
        if self.checkInDate and self.checkOutDate and self.checkOutDate <= self.checkInDate:
            raise ValueError("Check-out date must be after check-in date")
        return self


class BookingCancel(BaseModel):
    cancellationReason: Optional[str] = Field(None, max_length=1000)


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class PaymentStatusUpdate(BaseModel):
    paymentStatus: PaymentStatus
    paymentMethod: Optional[str] = Field(None, max_length=50)


class BookingResponse(BaseModel):
    id: int
    userId: int
    hotelId: int
    checkInDate: date
    checkOutDate: date
    numberOfGuests: int
    numberOfRooms: int
    totalPrice: float
    currency: str
    status: str
    paymentStatus: str
    paymentMethod: Optional[str] = None
    specialRequests: Optional[str] = None
    guestNames: List[str] = []
    contactEmail: str
    contactPhone: Optional[str] = None
    bookingReference: str
    cancellationReason: Optional[str] = None
    cancellationDate: Optional[datetime] = None
    numberOfNights: int
    isUpcoming: bool
    isCurrentStay: bool
    isPastStay: bool
    canBeCancelled: bool
    isPaid: bool
    hotel: Optional[HotelSummary] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    class Config:
        from_attributes = True


class BookingData(BaseModel):
    booking: BookingResponse


class BookingListData(BaseModel):
    bookings: List[BookingResponse]
    pagination: Pagination
    filters: Optional[Dict[str, Any]] = None


# Review Schemas
class ReviewCreate(BaseModel):
    hotelId: int = Field(..., gt=0)
    bookingId: Optional[int] = Field(None, gt=0)
    rating: float = Field(..., ge=1, le=5)
    title: Optional[str] = Field(None, max_length=255)
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewUpdate(BaseModel):
    rating: Optional[float] = Field(None, ge=1, le=5)
    title: Optional[str] = Field(None, max_length=255)
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewHotelResponse(BaseModel):
    response: str = Field(..., min_length=1, max_length=2000)
    isVisible: Optional[bool] = None


class ReviewData(BaseModel):
    review: ReviewResponse


# Favorite Schemas
class FavoriteCreate(BaseModel):
    hotelId: int = Field(..., gt=0)
    notes: Optional[str] = Field(None, max_length=500)


class FavoriteResponse(BaseModel):
    id: int
    hotelId: int
    notes: Optional[str] = None
    createdAt: Optional[datetime] = None
    hotel: HotelSummary

    class Config:
        from_attributes = True


class FavoriteListData(BaseModel):
    favorites: List[FavoriteResponse]


class FavoriteData(BaseModel):
    favorite: FavoriteResponse


# Message Schemas
class MessageCreate(BaseModel):
    subject: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1, max_length=5000)
    category: MessageCategory = "general"
    priority: MessagePriority = "medium"
    attachments: List[str] = Field([], max_length=10)
    userId: Optional[int] = Field(None, gt=0, description="Recipient, staff only")


class MessageStatusUpdate(BaseModel):
    status: MessageStatus


class MessageResponse(BaseModel):
    id: int
    userId: int
    employeeId: Optional[int] = None
    subject: str
    message: str
    status: str
    priority: str
    priorityLevel: int
    category: str
    isUserMessage: bool
    attachments: List[str] = []
    readByUser: bool
    readByEmployee: bool
    responseTime: Optional[int] = None
    resolvedAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None

    class Config:
        from_attributes = True


class MessageData(BaseModel):
    message: MessageResponse


class MessageListData(BaseModel):
    messages: List[MessageResponse]
    pagination: Pagination


# External provider shapes
class Airport(BaseModel):
    code: str
    name: str
    city: str = ""
    country: str = ""


class Airline(BaseModel):
    name: str
    code: str
    logo: Optional[str] = None


class FlightEndpoint(BaseModel):
    airport: str
    time: str
    date: str


class Price(BaseModel):
    amount: float
    currency: str = "USD"


class Flight(BaseModel):
    id: str
    airline: Airline
    departure: FlightEndpoint
    arrival: FlightEndpoint
    duration: str
    stops: int = 0
    price: Price
    cabinClass: str = "economy"
    bookingUrl: Optional[str] = None


class PopularDestination(BaseModel):
    destination: str
    price: float
    currency: str = "USD"


class PricePoint(BaseModel):
    date: str
    price: float


class Coordinates(BaseModel):
    latitude: float
    longitude: float


class ExternalHotel(BaseModel):
    code: int
    name: str
    description: str = ""
    city: str = ""
    country: str = ""
    coordinates: Optional[Coordinates] = None
    category: Optional[str] = None
    images: List[str] = []
    amenities: List[str] = []
    address: str = ""
    minRate: Optional[float] = None
    currency: Optional[str] = None


class ExternalRoom(BaseModel):
    roomCode: str
    roomName: str
    rateKey: str = ""
    net: float = 0
    adults: int
    children: int = 0


class ExternalAvailability(BaseModel):
    hotelCode: int
    hotelName: str
    currency: Optional[str] = None
    rooms: List[ExternalRoom] = []


class Destination(BaseModel):
    code: str
    name: str
    country: Optional[str] = None


class SyncHotelsRequest(BaseModel):
    destinationCode: str = Field(..., min_length=1, max_length=10)


class SyncHotelsResult(BaseModel):
    synced: int
    created: int
    updated: int
    errors: int
