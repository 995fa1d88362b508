"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lossy_mint.api.admin import router as admin_router
from lossy_mint.api.models import CreateSessionRequest
from lossy_mint.app_logging import configure_logging
from lossy_mint.config import parse_allowed_origins
from lossy_mint.containers import AppContainer
from lossy_mint.domain.errors import EscrowError, SessionNotFoundError, UploadError
from lossy_mint.domain.sessions import OutputType, SessionStatus, to_millis
from lossy_mint.services.sessions import PollResult

AMOUNT_DISPLAY = "$2.25 USDC"
NETWORK = "solana-mainnet"
EXPLORER_URL = "https://explorer.solana.com/address"
EXCHANGE_ART_URL = "https://exchange.art/single"
ENDPOINTS = [
    "POST /api/upload    upload media to IPFS",
    "POST /api/session   create mint session + unique payment address",
    "GET  /api/poll/:id  poll payment status, auto-mint on confirmation",
    "GET  /api/health    this endpoint",
]


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container
    app.add_middleware(
        CORSMiddleware,
        allow_origins=parse_allowed_origins(container.settings.cors_allow_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.include_router(admin_router)

    @app.exception_handler(SessionNotFoundError)
    async def session_not_found(
        request: Request, exc: SessionNotFoundError
    ) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(EscrowError)
    async def escrow_error(request: Request, exc: EscrowError) -> JSONResponse:
        logger.error(
            "Request failed", exc_info=exc, extra={"path": request.url.path}
        )
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def invalid_request(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        fields = [".".join(str(part) for part in err["loc"]) for err in exc.errors()]
        return JSONResponse(
            status_code=400, content={"error": f"Invalid request: {', '.join(fields)}"}
        )

    @app.get("/api/health")
    async def health(request: Request) -> JSONResponse:
        """Report configured secrets and KV connectivity."""
        state_container: AppContainer = request.app.state.container
        report = await state_container.health_service.report()
        return JSONResponse(
            status_code=200 if report.ok else 500,
            content={
                "status": "ok" if report.ok else "degraded",
                "checks": report.checks,
                "kv": "connected" if report.kv_connected else "error",
                "endpoints": ENDPOINTS,
            },
        )

    @app.post("/api/upload")
    async def upload(
        request: Request,
        file: UploadFile = File(...),
        output_type: OutputType = Form(OutputType.VIDEO, alias="outputType"),
    ) -> JSONResponse:
        """Store the visitor's media artifact on IPFS."""
        state_container: AppContainer = request.app.state.container
        try:
            data = await file.read()
            media = await state_container.upload_service.upload(
                data, file.filename, file.content_type, output_type
            )
        except UploadError as exc:
            logger.exception("Upload failed", extra={"upload_name": file.filename})
            return JSONResponse(status_code=500, content={"error": str(exc)})
        finally:
            await file.close()
        return JSONResponse(
            content={
                "success": True,
                "fileUri": media.file_uri,
                "cid": media.content_id,
                "mimeType": media.mime_type,
                "outputType": media.output_type.value,
            }
        )

    @app.post("/api/session")
    async def create_session(
        payload: CreateSessionRequest, request: Request
    ) -> dict[str, object]:
        """Create a mint session with its own payment address."""
        state_container: AppContainer = request.app.state.container
        session = await state_container.session_controller.create_session(
            payload.output_type, payload.metadata.to_domain()
        )
        return {
            "success": True,
            "sessionId": session.session_id,
            "paymentAddress": session.escrow_address,
            "requiredUsdc": session.required_amount,
            "amountDisplay": AMOUNT_DISPLAY,
            "expiresAt": to_millis(session.expires_at),
            "network": NETWORK,
            "usdcMint": state_container.settings.usdc_mint,
            "note": "Include session ID in transaction memo for fastest processing",
        }

    @app.get("/api/poll/{session_id}")
    async def poll(session_id: str, request: Request) -> dict[str, object]:
        """Advance a session and report its status."""
        state_container: AppContainer = request.app.state.container
        result = await state_container.session_controller.poll(session_id)
        return poll_payload(result)

    return app


def poll_payload(result: PollResult) -> dict[str, object]:  # noqa: PLR0911
    """Render a poll result as the JSON body the frontend expects."""
    session = result.session
    status = result.status
    if status is SessionStatus.MINTING:
        return {"status": "minting", "message": "Mint in progress..."}
    if status is SessionStatus.EXPIRED:
        return {"status": "expired"}
    if status is SessionStatus.PENDING:
        return {
            "status": "pending",
            "paymentAddress": session.escrow_address,
            "requiredUsdc": session.required_amount,
            "receivedUsdc": result.received_amount or 0,
            "amountDisplay": AMOUNT_DISPLAY,
        }
    if status in {SessionStatus.PAID, SessionStatus.NEEDS_FUNDING}:
        return {
            "status": status.value,
            "error": getattr(session.state, "error", ""),
            "buyerWallet": session.buyer,
        }
    mint = session.mint
    payload: dict[str, object] = {
        "status": "minted",
        "sessionStatus": status.value,
        "mintAddress": mint.mint_address,
        "mintSignature": mint.mint_signature,
        "metadataUri": mint.metadata_uri,
        "buyerWallet": session.buyer,
        "explorerUrl": f"{EXPLORER_URL}/{mint.mint_address}",
        "exchangeArtUrl": f"{EXCHANGE_ART_URL}/{mint.mint_address}",
    }
    sweep = getattr(session.state, "sweep", None)
    if sweep is not None:
        payload["sweepSignature"] = sweep.asset_signature
        payload["gasSweepSignature"] = sweep.gas_signature
    return payload
