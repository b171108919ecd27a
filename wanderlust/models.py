from datetime import date, datetime, timedelta
from .database import Base
from sqlalchemy import (
    Column, Integer, String, ForeignKey, DateTime, Date, Enum, TIMESTAMP, func, Text, Numeric,
    Boolean, JSON, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship

BOOKING_STATUSES = ("pending", "confirmed", "cancelled", "completed")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")
MESSAGE_STATUSES = ("open", "in_progress", "resolved", "closed")
MESSAGE_PRIORITIES = ("low", "medium", "high", "urgent")
MESSAGE_CATEGORIES = ("booking", "payment", "complaint", "general", "technical")

REVIEW_EDIT_WINDOW = timedelta(days=7)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    hashedPassword = Column(String(255), nullable=False)
    firstName = Column(String(100), nullable=False)
    lastName = Column(String(100), nullable=False)
    phone = Column(String(20))
    dateOfBirth = Column(Date)
    role = Column(Enum("customer", "employee", "admin", name="user_roles"), nullable=False, default="customer", index=True)
    isVerified = Column(Boolean, nullable=False, default=False)
    verificationToken = Column(String(255))
    profileImage = Column(String(500))
    preferences = Column(JSON, default=dict)
    createdAt = Column(TIMESTAMP, server_default=func.now())
    updatedAt = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    # Relationships
    bookings = relationship("Booking", back_populates="user")
    reviews = relationship("Review", back_populates="user")
    favorites = relationship("Favorite", back_populates="user")

    @property
    def fullName(self) -> str:
        return f"{self.firstName} {self.lastName}"


class Hotel(Base):
    __tablename__ = "hotels"
    __table_args__ = (
        CheckConstraint('"availableRooms" >= 0', name="ck_hotels_available_rooms_non_negative"),
        CheckConstraint('"totalRooms" >= 1', name="ck_hotels_total_rooms_positive"),
        CheckConstraint('"starRating" BETWEEN 1 AND 5', name="ck_hotels_star_rating"),
        UniqueConstraint("name", "city", "country", name="uq_hotels_name_location"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    address = Column(String(500), nullable=False)
    city = Column(String(100), nullable=False, index=True)
    country = Column(String(100), nullable=False, index=True)
    postalCode = Column(String(20))
    latitude = Column(Numeric(10, 8))
    longitude = Column(Numeric(11, 8))
    starRating = Column(Integer, nullable=False, default=3, index=True)
    pricePerNight = Column(Numeric(10, 2), nullable=False, index=True)
    currency = Column(String(3), nullable=False, default="USD")
    amenities = Column(JSON, default=list)
    images = Column(JSON, default=list)
    checkInTime = Column(String(5), default="15:00")
    checkOutTime = Column(String(5), default="11:00")
    hotelbedsId = Column(String(50), unique=True)
    isActive = Column(Boolean, nullable=False, default=True, index=True)
    totalRooms = Column(Integer, nullable=False, default=10)
    availableRooms = Column(Integer, nullable=False, default=10)
    phoneNumber = Column(String(20))
    email = Column(String(255))
    website = Column(String(500))
    createdAt = Column(TIMESTAMP, server_default=func.now())
    updatedAt = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    bookings = relationship("Booking", back_populates="hotel")
    reviews = relationship("Review", back_populates="hotel")
    favorites = relationship("Favorite", back_populates="hotel")

    @property
    def fullAddress(self) -> str:
        return f"{self.address}, {self.city}, {self.country}"

    def has_rooms(self, rooms: int = 1) -> bool:
        return bool(self.isActive) and self.availableRooms >= rooms


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint('"checkOutDate" > "checkInDate"', name="ck_bookings_stay_dates"),
        CheckConstraint('"numberOfRooms" >= 1', name="ck_bookings_rooms_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    userId = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    hotelId = Column(Integer, ForeignKey("hotels.id"), nullable=False, index=True)
    checkInDate = Column(Date, nullable=False, index=True)
    checkOutDate = Column(Date, nullable=False, index=True)
    numberOfGuests = Column(Integer, nullable=False, default=1)
    numberOfRooms = Column(Integer, nullable=False, default=1)
    totalPrice = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(Enum(*BOOKING_STATUSES, name="booking_status"), nullable=False, default="pending", index=True)
    paymentStatus = Column(Enum(*PAYMENT_STATUSES, name="payment_status"), nullable=False, default="pending", index=True)
    paymentMethod = Column(String(50))
    specialRequests = Column(Text)
    guestNames = Column(JSON, default=list)
    contactEmail = Column(String(255), nullable=False)
    contactPhone = Column(String(20))
    bookingReference = Column(String(20), nullable=False, unique=True)
    cancellationReason = Column(Text)
    cancellationDate = Column(DateTime)
    createdAt = Column(TIMESTAMP, server_default=func.now())
    updatedAt = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="bookings")
    hotel = relationship("Hotel", back_populates="bookings")

    @property
    def numberOfNights(self) -> int:
        return (self.checkOutDate - self.checkInDate).days

    @property
    def isActive(self) -> bool:
        return self.status in ("pending", "confirmed")

    @property
    def canBeCancelled(self) -> bool:
        return self.status in ("pending", "confirmed")

    @property
    def isPaid(self) -> bool:
        return self.paymentStatus == "paid"

    @property
    def isUpcoming(self) -> bool:
        return self.checkInDate > date.today()

    @property
    def isCurrentStay(self) -> bool:
        today = date.today()
        return self.checkInDate <= today < self.checkOutDate

    @property
    def isPastStay(self) -> bool:
        return self.checkOutDate < date.today()


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating"),
        # NULL bookingIds never collide, so unlinked reviews are unconstrained
        UniqueConstraint("userId", "hotelId", "bookingId", name="uq_reviews_user_hotel_booking"),
    )

    id = Column(Integer, primary_key=True)
    userId = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    hotelId = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False, index=True)
    bookingId = Column(Integer, ForeignKey("bookings.id"), index=True)
    rating = Column(Numeric(2, 1), nullable=False)
    title = Column(String(255))
    comment = Column(Text)
    isVerified = Column(Boolean, nullable=False, default=False)
    isVisible = Column(Boolean, nullable=False, default=True, index=True)
    helpfulVotes = Column(Integer, nullable=False, default=0)
    responseFromHotel = Column(Text)
    responseDate = Column(DateTime)
    createdAt = Column(TIMESTAMP, server_default=func.now())
    updatedAt = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="reviews")
    hotel = relationship("Hotel", back_populates="reviews")
    booking = relationship("Booking")

    def can_be_edited(self, now: datetime = None) -> bool:
        now = now or datetime.utcnow()
        return self.createdAt is not None and self.createdAt > now - REVIEW_EDIT_WINDOW


class Favorite(Base):
    __tablename__ = "favorites"
    __table_args__ = (
        UniqueConstraint("userId", "hotelId", name="uq_favorites_user_hotel"),
    )

    id = Column(Integer, primary_key=True)
    userId = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    hotelId = Column(Integer, ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False, index=True)
    notes = Column(Text)
    createdAt = Column(TIMESTAMP, server_default=func.now())
    updatedAt = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="favorites")
    hotel = relationship("Hotel", back_populates="favorites")


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True)
    userId = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    employeeId = Column(Integer, ForeignKey("users.id"), index=True)
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(Enum(*MESSAGE_STATUSES, name="message_status"), nullable=False, default="open", index=True)
    priority = Column(Enum(*MESSAGE_PRIORITIES, name="message_priority"), nullable=False, default="medium", index=True)
    category = Column(Enum(*MESSAGE_CATEGORIES, name="message_category"), nullable=False, default="general", index=True)
    isUserMessage = Column(Boolean, nullable=False, default=True)
    attachments = Column(JSON, default=list)
    readByUser = Column(Boolean, nullable=False, default=False)
    readByEmployee = Column(Boolean, nullable=False, default=False)
    responseTime = Column(Integer)  # minutes
    resolvedAt = Column(DateTime)
    createdAt = Column(TIMESTAMP, server_default=func.now())
    updatedAt = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    user = relationship("User", foreign_keys=[userId])
    employee = relationship("User", foreign_keys=[employeeId])

    @property
    def priorityLevel(self) -> int:
        return MESSAGE_PRIORITIES.index(self.priority) + 1

    def is_resolved(self) -> bool:
        return self.status in ("resolved", "closed")

    def mark_as_read(self, by_staff: bool):
        if by_staff:
            self.readByEmployee = True
        else:
            self.readByUser = True
