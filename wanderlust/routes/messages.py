import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import case
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import InvalidTransitionError, NotFoundError
from ..middleware import Principal, get_current_principal, is_elevated, is_staff
from ..models import Message, User
from ..schemas import (
    ApiResponse, MessageCategory, MessageCreate, MessageData, MessageListData, MessagePriority, MessageResponse,
    MessageStatus, MessageStatusUpdate, Pagination,
)

logger = logging.getLogger(__name__)

router = APIRouter()

MESSAGE_TRANSITIONS = {
    "open": ("in_progress", "closed"),
    "in_progress": ("resolved", "closed"),
    "resolved": ("closed",),
}

PRIORITY_ORDER = case({"urgent": 4, "high": 3, "medium": 2, "low": 1}, value=Message.priority)


def get_message_for(db: Session, principal: Principal, message_id: int) -> Message:
    query = db.query(Message).filter(Message.id == message_id)
    if not is_elevated(principal):
        query = query.filter(Message.userId == principal.userId)
    message = query.first()
    if not message:
        raise NotFoundError("Message not found", error="MESSAGE_NOT_FOUND")
    return message


@router.post("", response_model=ApiResponse[MessageData], status_code=status.HTTP_201_CREATED)
def create_message(request: MessageCreate, principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    staff_outbound = is_elevated(principal) and request.userId is not None
    if staff_outbound:
        recipient = db.query(User.id).filter(User.id == request.userId).first()
        if not recipient:
            raise NotFoundError("User not found", error="USER_NOT_FOUND")

    message = Message(
        userId=request.userId if staff_outbound else principal.userId,
        employeeId=principal.userId if staff_outbound else None,
        subject=request.subject,
        message=request.message,
        category=request.category,
        priority=request.priority,
        attachments=request.attachments,
        isUserMessage=not staff_outbound,
        readByUser=not staff_outbound,
        readByEmployee=staff_outbound,
        status="open",
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return ApiResponse(message="Message sent successfully", data=MessageData(message=MessageResponse.model_validate(message)))


@router.get("", response_model=ApiResponse[MessageListData])
def list_messages(
    status: Optional[MessageStatus] = None,
    priority: Optional[MessagePriority] = None,
    category: Optional[MessageCategory] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    query = db.query(Message)
    if not is_elevated(principal):
        query = query.filter(Message.userId == principal.userId)
    if status:
        query = query.filter(Message.status == status)
    if priority:
        query = query.filter(Message.priority == priority)
    if category:
        query = query.filter(Message.category == category)

    total = query.count()
    messages = query.order_by(
        PRIORITY_ORDER.desc(), Message.createdAt.desc(), Message.id.desc(),
    ).offset((page - 1) * limit).limit(limit).all()
    return ApiResponse(
        message="Messages retrieved successfully",
        data=MessageListData(
            messages=[MessageResponse.model_validate(message) for message in messages],
            pagination=Pagination.build(page, limit, total),
        ),
    )


@router.get("/{message_id}", response_model=ApiResponse[MessageData])
def get_message(message_id: int, principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    message = get_message_for(db, principal, message_id)
    message.mark_as_read(by_staff=is_elevated(principal))
    db.commit()
    db.refresh(message)
    return ApiResponse(message="Message retrieved successfully", data=MessageData(message=MessageResponse.model_validate(message)))


@router.patch("/{message_id}/status", response_model=ApiResponse[MessageData])
def change_message_status(
    message_id: int,
    request: MessageStatusUpdate,
    principal: Principal = Depends(is_staff),
    db: Session = Depends(get_db),
):
    message = get_message_for(db, principal, message_id)
    current_status = message.status
    if request.status not in MESSAGE_TRANSITIONS.get(current_status, ()):
        raise InvalidTransitionError(
            f"Cannot change message status from {current_status} to {request.status}",
            data={"from": current_status, "to": request.status},
        )

    now = datetime.utcnow()
    if request.status == "in_progress":
        message.employeeId = message.employeeId or principal.userId
        if message.responseTime is None and message.createdAt is not None:
            message.responseTime = max(int((now - message.createdAt).total_seconds() // 60), 0)
    message.status = request.status
    if message.is_resolved() and message.resolvedAt is None:
        message.resolvedAt = now
    db.commit()
    db.refresh(message)
    logger.info("Message %s moved %s -> %s by user %s", message.id, current_status, message.status, principal.userId)
    return ApiResponse(message="Message status updated successfully", data=MessageData(message=MessageResponse.model_validate(message)))
