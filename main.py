from fastapi import FastAPI, Depends, Query, Request, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError
from datetime import datetime
import json
import logging

import config
from csv_store import DonationStore, DonationStoreError, stored_fields
from reports import donation_stats, export_donations
from schemas import (
    DonationCreate, DonationListResponse, DonationStats, MessageResponse,
    ErrorResponse, HealthResponse
)
from security_middleware import (
    SecurityHeadersMiddleware,
    RequestValidationMiddleware,
    setup_rate_limits,
)
from websocket_manager import feed

logger = logging.getLogger(__name__)

# Lifespan event handler
from contextlib import asynccontextmanager

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up donation tracker...")

    store = DonationStore(config.DONATIONS_CSV_PATH)
    await store.initialize()
    app.state.store = store

    logger.info("Server ready to accept connections")

    yield

    logger.info("Shutting down server...")

app = FastAPI(
    title="Donation Tracker",
    description="Donation records and leaderboard backed by a flat file",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiting
limiter = setup_rate_limits(app)

# Security Middleware (order matters!)
app.add_middleware(RequestValidationMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
    max_age=3600,
)


def get_store(request: Request) -> DonationStore:
    """Store handle created by the lifespan handler."""
    return request.app.state.store


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump()
    )


@app.get("/api/donations", response_model=DonationListResponse)
async def list_donations(store: DonationStore = Depends(get_store)):
    """List every stored donation in the order it was saved."""
    try:
        donations = await store.list_records()
    except DonationStoreError:
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to read donations")
    return DonationListResponse(donations=donations)


@app.post("/api/donations", response_model=MessageResponse)
@limiter.limit(config.DONATION_RATE_LIMIT)
async def create_donation(
    request: Request,
    store: DonationStore = Depends(get_store)
):
    """Append a donation after the payment widget confirmed it."""
    try:
        payload = await request.json()
    except ValueError:
        return error_response(status.HTTP_400_BAD_REQUEST, "Request body must be valid JSON")
    if not isinstance(payload, dict):
        return error_response(status.HTTP_400_BAD_REQUEST, "Request body must be a JSON object")

    try:
        donation = DonationCreate(**payload)
    except ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
        return error_response(status.HTTP_400_BAD_REQUEST, f"Invalid fields: {fields}")

    missing = donation.missing_fields()
    if missing:
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            f"Missing required fields: {', '.join(missing)}"
        )

    try:
        await store.append_record(donation)
    except DonationStoreError:
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to save donation")

    await feed.broadcast_new_donation(stored_fields(donation))

    return MessageResponse(message="Donation saved successfully")


@app.get("/api/donations/stats", response_model=DonationStats)
async def get_donation_stats(store: DonationStore = Depends(get_store)):
    """Total raised, donor count and the largest donation."""
    try:
        donations = await store.list_records()
    except DonationStoreError:
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to read donations")
    return donation_stats(donations)


@app.get("/api/donations/export")
async def export(
    format: str = Query("csv", pattern="^(csv|excel)$"),
    store: DonationStore = Depends(get_store)
):
    """Export donations as CSV or Excel."""
    try:
        donations = await store.list_records()
    except DonationStoreError:
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to read donations")

    output, media_type = export_donations(donations, format)
    filename = f"donations_{datetime.now().strftime('%Y%m%d_%H%M%S')}.{format if format == 'csv' else 'xlsx'}"

    return StreamingResponse(
        output,
        media_type=media_type,
        headers={
            "Content-Disposition": f"attachment; filename={filename}"
        }
    )


# WebSocket endpoint for live leaderboard updates
@app.websocket("/ws/donations")
async def donation_feed(websocket: WebSocket):
    """
    Pushes every newly saved donation to connected leaderboards.

    Usage: ws://localhost:3001/ws/donations
    """
    await feed.connect(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.debug("Ignoring malformed feed message")
                continue

            if isinstance(message, dict) and message.get("type") == "ping":
                await websocket.send_json({
                    "type": "pong",
                    "timestamp": datetime.now().isoformat()
                })
    except WebSocketDisconnect:
        feed.disconnect(websocket)


@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="ok", message="Server is running")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
