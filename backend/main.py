"""Main entry point for ChatRelay backend API."""
import logging
import time
from dataclasses import dataclass
from typing import List, Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import PORT, LOG_LEVEL, LOG_FORMAT, CORS_ORIGINS
from logger import setup_logging
from models.api import (
    AuthRequest,
    ChatRequest,
    InpaintRequest,
    InpaintResponse,
    PricingRequest,
    PricingResponse,
    TokenResponse,
    TurnResponse,
)
from services.auth_client import GoogleAuthClient
from services.chat_orchestrator import ChatOrchestrator
from services.errors import BadRequest, ChatServiceError
from services.generation_client import GenerationClient
from services.history_assembler import HistoryAssembler
from services.history_query import HistoryQuery
from services.record_store import RecordStore, SupabaseRecordStore
from services.turn_reconciler import TurnReconciler

# Initialize logging
logger = logging.getLogger(__name__)

FLAT_PRICE = "100 USD"


@dataclass
class AppServices:
    """Service graph shared by all requests; built once per process."""
    orchestrator: ChatOrchestrator
    history_query: HistoryQuery
    auth_client: GoogleAuthClient


def build_services(
    store: Optional[RecordStore] = None,
    generation_client: Optional[GenerationClient] = None,
    auth_client: Optional[GoogleAuthClient] = None
) -> AppServices:
    """
    Wire the service graph around one shared record store.

    Args:
        store: Record store; defaults to the Supabase table from config
        generation_client: Generation client; defaults to the configured service
        auth_client: OAuth client; defaults to the configured Google credentials

    Returns:
        AppServices ready to hand to create_app()
    """
    store = store or SupabaseRecordStore()
    orchestrator = ChatOrchestrator(
        assembler=HistoryAssembler(store),
        generation_client=generation_client or GenerationClient(),
        reconciler=TurnReconciler(store),
    )
    return AppServices(
        orchestrator=orchestrator,
        history_query=HistoryQuery(store),
        auth_client=auth_client or GoogleAuthClient(),
    )


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": {"code": code, "message": message}})


def create_app(services: Optional[AppServices] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        services: Pre-built services (tests pass in-memory fakes); when omitted
            they are built from config at startup

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="ChatRelay Backend",
        description="Conversation orchestration backend for an external generation service",
        version="1.0.0"
    )
    app.state.services = services

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.on_event("startup")
    async def startup_event():
        """Initialize services on startup."""
        setup_logging(LOG_LEVEL, LOG_FORMAT)
        if app.state.services is not None:
            return

        logger.info("Initializing ChatRelay services...")
        try:
            app.state.services = build_services()
            logger.info("All services initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize services: {e}", exc_info=True)
            raise

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        client_ip = request.client.host if request.client else ""
        logger.info(
            "Incoming request",
            extra={"fields": {"method": request.method, "path": request.url.path, "ip": client_ip}}
        )

        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.info(
                "Request handled",
                extra={"fields": {
                    "method": request.method,
                    "path": request.url.path,
                    "ip": client_ip,
                    "status": status_code,
                    "duration_ms": duration_ms,
                }}
            )

    @app.exception_handler(ChatServiceError)
    async def chat_service_error_handler(request: Request, exc: ChatServiceError):
        if exc.status_code >= 500:
            logger.error(
                f"{exc.error.code}: {exc.error.message}",
                extra={"fields": {"path": request.url.path, "details": exc.error.details}}
            )
        else:
            logger.warning(f"{exc.error.code}: {exc.error.message}", extra={"fields": {"path": request.url.path}})
        return _error_response(exc.status_code, exc.error.code, exc.error.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Error decoding request: {exc.errors()}", extra={"fields": {"path": request.url.path}})
        return _error_response(400, BadRequest.code, "Bad request")

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(f"Unexpected error processing {request.url.path}: {exc}", exc_info=exc)
        return _error_response(500, ChatServiceError.code, "Internal server error")

    def get_services() -> AppServices:
        if app.state.services is None:
            raise ChatServiceError("Services are not initialized")
        return app.state.services

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"status": "ok", "message": "ChatRelay Backend API"}

    @app.get("/health")
    async def health():
        """Detailed health check."""
        return {
            "status": "healthy",
            "service": "chatrelay-backend",
            "version": "1.0.0"
        }

    @app.post("/chat", response_model=TurnResponse, response_model_exclude_none=True)
    def chat_endpoint(request: ChatRequest) -> TurnResponse:
        """
        Process one conversational turn.

        Assembles history, composes the prompt, calls the generation service
        and persists both turns when a user_id is supplied. The response is
        sent only after persistence has committed.
        """
        outcome = get_services().orchestrator.handle_chat(request.to_incoming())
        return TurnResponse.from_turn(outcome.assistant_turn)

    @app.get("/chat/{chat_id}", response_model=List[TurnResponse], response_model_exclude_none=True)
    def chat_history_endpoint(chat_id: str, response: Response) -> List[TurnResponse]:
        """Return the stored turns of a conversation in store order."""
        batch = get_services().history_query.by_chat(chat_id.strip("/"))
        response.headers["X-Skipped-Records"] = str(batch.skipped)
        return [TurnResponse.from_turn(turn) for turn in batch.turns]

    @app.get("/user/", include_in_schema=False)
    def missing_user_endpoint():
        raise BadRequest("Missing user_id")

    @app.get("/user/{user_id}", response_model=List[TurnResponse], response_model_exclude_none=True)
    def user_messages_endpoint(user_id: str, response: Response) -> List[TurnResponse]:
        """Return the stored turns of a participant across conversations."""
        batch = get_services().history_query.by_user(user_id.strip().strip("/"))
        response.headers["X-Skipped-Records"] = str(batch.skipped)
        return [TurnResponse.from_turn(turn) for turn in batch.turns]

    @app.post("/auth", response_model=TokenResponse)
    def auth_endpoint(request: AuthRequest) -> TokenResponse:
        """Exchange an OAuth authorization code for Google tokens."""
        logger.info("Received new /auth request")
        return get_services().auth_client.exchange_code(request.code)

    @app.post("/inpaint", response_model=InpaintResponse)
    def inpaint_endpoint(request: InpaintRequest) -> InpaintResponse:
        """Edit an image and record the result like a chat reply."""
        turn = get_services().orchestrator.handle_inpaint(request.to_job())
        return InpaintResponse(img=turn.image, img_name=turn.image_name)

    @app.post("/pricing", response_model=PricingResponse)
    def pricing_endpoint(request: PricingRequest) -> PricingResponse:
        """Quote a price for generating a resource."""
        logger.info(
            "Processing pricing request",
            extra={"fields": {
                "user_id": request.user_id,
                "resource_name": request.resource_name,
                "resource_description": request.resource_description,
            }}
        )
        return PricingResponse(pricing_schema=FLAT_PRICE)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    setup_logging(LOG_LEVEL, LOG_FORMAT)
    logger.info(f"Starting ChatRelay backend on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
