from typing import Optional

from fastapi import Depends, Request, status
from sqlalchemy.orm import Session

from common import rating_gate
from common.database import get_db
from common.dependencies import get_current_active_user
from common.models import User
from common.schemas import RatingCreate, RatingListResponse, RatingResponse, RatingSummary, RatingSummaryResponse
from common.service_app import create_service_app, limiter

app = create_service_app("Ratings Service", "ratings")


@app.post("/ratings", response_model=RatingResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def submit_rating(
    request: Request,
    rating_in: RatingCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> RatingResponse:
    rating = rating_gate.submit_rating(db, current_user, rating_in.booking_id, rating_in.rating, rating_in.comment)
    return RatingResponse(message="Thank you for your feedback", rating=rating)


@app.get("/ratings/summary", response_model=RatingSummaryResponse)
@limiter.limit("60/minute")
def ratings_summary(
    request: Request,
    room_type: Optional[str] = None,
    room_number: Optional[str] = None,
    db: Session = Depends(get_db),
) -> RatingSummaryResponse:
    summary = rating_gate.rating_summary(db, room_type=room_type, room_number=room_number)
    return RatingSummaryResponse(summary=RatingSummary(**summary))


@app.get("/ratings", response_model=RatingListResponse)
@limiter.limit("60/minute")
def list_ratings(
    request: Request,
    room_type: Optional[str] = None,
    room_number: Optional[str] = None,
    db: Session = Depends(get_db),
) -> RatingListResponse:
    return RatingListResponse(ratings=rating_gate.list_ratings(db, room_type=room_type, room_number=room_number))
