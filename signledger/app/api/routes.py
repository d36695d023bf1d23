import logging
import uuid
from typing import Annotated, Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    Header,
    HTTPException,
    Request,
    UploadFile,
    status,
)
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from signledger.app.config import SignLedgerConfig
from signledger.app.coordinator.assembler import DocumentAssembler
from signledger.app.coordinator.signing import sign_document
from signledger.app.document.pikepdf_document import PikePdfDocument
from signledger.app.errors import (
    DigestUnavailableError,
    FinalizationError,
    SignerValidationError,
)
from signledger.app.schemas.artifact import finalized_file_name
from signledger.app.schemas.ledger import (
    DocumentLedger,
    SourceMetadata,
    create_ledger,
    matches_source,
)
from signledger.app.session.ledger_repository import LedgerRepository

logger = logging.getLogger("signledger.api")

router = APIRouter(tags=["Signature Ledger"])

# =============================================================================
# Dependency providers
# =============================================================================

def get_correlation_id(
    x_correlation_id: Annotated[
        Optional[str],
        Header(description="Audit trace ID"),
    ] = None,
) -> str:
    """Extract or generate a correlation ID for end-to-end traceability."""
    if x_correlation_id and len(x_correlation_id) > 128:
        return str(uuid.uuid4())
    return x_correlation_id or str(uuid.uuid4())


def get_config(request: Request) -> SignLedgerConfig:
    return request.app.state.config


def get_repository(request: Request) -> LedgerRepository:
    return request.app.state.repository


def get_assembler(request: Request) -> DocumentAssembler:
    return request.app.state.assembler


# =============================================================================
# Helpers
# =============================================================================

def _safe_filename(filename: Optional[str]) -> str:
    if not filename:
        return "document.pdf"
    return (
        filename.replace('"', "")
        .replace("\n", "")
        .replace("\r", "")
        .replace("/", "_")
        .replace("\\", "_")
    )


async def _read_pdf(
    file: UploadFile,
    config: SignLedgerConfig,
    correlation_id: str,
) -> bytes:
    """Validated, bounded read of an uploaded PDF."""
    if file.content_type != "application/pdf":
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="Only 'application/pdf' files are accepted.",
            headers={"X-Correlation-ID": correlation_id},
        )

    max_bytes = config.MAX_PDF_SIZE_MB * 1024 * 1024

    try:
        pdf_bytes = await file.read(max_bytes + 1)
    finally:
        await file.close()

    if not pdf_bytes:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Empty PDF payload.",
            headers={"X-Correlation-ID": correlation_id},
        )

    if len(pdf_bytes) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {config.MAX_PDF_SIZE_MB}MB limit.",
            headers={"X-Correlation-ID": correlation_id},
        )

    return pdf_bytes


def _parse_ledger(
    raw: Optional[str],
    correlation_id: str,
) -> Optional[DocumentLedger]:
    if raw is None or not raw.strip():
        return None
    try:
        return DocumentLedger.from_json(raw)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid ledger: {exc.error_count()} validation error(s).",
            headers={"X-Correlation-ID": correlation_id},
        ) from exc


def _error_response(
    exc: Exception,
    correlation_id: str,
) -> HTTPException:
    """Map a signing or finalization failure to an HTTP error."""
    if isinstance(exc, DigestUnavailableError):
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        code = status.HTTP_422_UNPROCESSABLE_ENTITY

    return HTTPException(
        status_code=code,
        detail={"reason": exc.reason.value, "message": str(exc)},
        headers={"X-Correlation-ID": correlation_id},
    )


def _ledger_conflict(correlation_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="Ledger belongs to a different document.",
        headers={"X-Correlation-ID": correlation_id},
    )


# =============================================================================
# GET /health
# =============================================================================

@router.get("/health", summary="Liveness check")
async def health() -> dict:
    return {"status": "ok"}


# =============================================================================
# POST /sign
# =============================================================================

@router.post(
    "/sign",
    summary="Record one signature against an uploaded PDF",
    responses={
        409: {"description": "Ledger belongs to a different document"},
        413: {"description": "Payload too large"},
        415: {"description": "Unsupported media type"},
        422: {"description": "Invalid PDF, signer or ledger"},
    },
)
async def sign(
    file: Annotated[UploadFile, File(description="PDF being signed")],
    name: Annotated[str, Form(description="Signer full name")],
    tax_id: Annotated[str, Form(description="Signer CPF")],
    config: Annotated[SignLedgerConfig, Depends(get_config)],
    repository: Annotated[LedgerRepository, Depends(get_repository)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
    ledger: Annotated[
        Optional[str],
        Form(description="Current ledger JSON; the stored ledger when omitted"),
    ] = None,
    last_modified: Annotated[
        int,
        Form(description="Client-side last-modified time, epoch ms"),
    ] = 0,
) -> JSONResponse:
    pdf_bytes = await _read_pdf(file, config, correlation_id)

    metadata = SourceMetadata(
        file_name=_safe_filename(file.filename),
        file_size=len(pdf_bytes),
        last_modified=last_modified,
    )

    current = _parse_ledger(ledger, correlation_id)
    if current is not None:
        if not matches_source(current, metadata):
            raise _ledger_conflict(correlation_id)
    else:
        current = repository.load()
        if current is None or not matches_source(current, metadata):
            current = create_ledger(metadata)

    try:
        with PikePdfDocument.load(pdf_bytes, max_pages=config.MAX_PAGE_COUNT):
            pass

        result = sign_document(
            pdf_bytes,
            current,
            name=name,
            tax_id=tax_id,
            device_token=repository.get_or_create_device_token(),
            chain=config.ENABLE_HASH_CHAIN,
        )
    except (FinalizationError, SignerValidationError) as exc:
        logger.warning(
            "sign_rejected",
            extra={"trace_id": correlation_id, "reason": exc.reason.value},
        )
        raise _error_response(exc, correlation_id) from exc

    repository.save(result.ledger)

    logger.info(
        "sign_success",
        extra={
            "trace_id": correlation_id,
            "document_id": result.ledger.document_id,
            "signer_count": result.ledger.signer_count,
        },
    )

    return JSONResponse(
        content={
            "ledger": result.ledger.model_dump(by_alias=True, mode="json"),
            "signature": result.signature.model_dump(by_alias=True, mode="json"),
        },
        headers={"X-Correlation-ID": correlation_id},
    )


# =============================================================================
# POST /finalize
# =============================================================================

@router.post(
    "/finalize",
    summary="Emit the finalized PDF with protocol page(s) and page headers",
    response_class=Response,
    responses={
        200: {
            "content": {"application/pdf": {}},
            "description": "Finalized PDF artifact",
        },
        409: {"description": "Ledger belongs to a different document"},
        413: {"description": "Payload too large"},
        415: {"description": "Unsupported media type"},
        422: {"description": "Invalid PDF or ledger, or layout overflow"},
        500: {"description": "Digest primitive unavailable"},
    },
)
async def finalize(
    file: Annotated[UploadFile, File(description="Original PDF")],
    config: Annotated[SignLedgerConfig, Depends(get_config)],
    repository: Annotated[LedgerRepository, Depends(get_repository)],
    assembler: Annotated[DocumentAssembler, Depends(get_assembler)],
    correlation_id: Annotated[str, Depends(get_correlation_id)],
    ledger: Annotated[
        Optional[str],
        Form(description="Ledger JSON; the stored ledger when omitted"),
    ] = None,
    last_modified: Annotated[
        int,
        Form(description="Client-side last-modified time, epoch ms"),
    ] = 0,
) -> Response:
    pdf_bytes = await _read_pdf(file, config, correlation_id)

    metadata = SourceMetadata(
        file_name=_safe_filename(file.filename),
        file_size=len(pdf_bytes),
        last_modified=last_modified,
    )

    current = _parse_ledger(ledger, correlation_id) or repository.load()
    if current is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="No ledger available for this document.",
            headers={"X-Correlation-ID": correlation_id},
        )
    if not matches_source(current, metadata):
        raise _ledger_conflict(correlation_id)

    try:
        artifact = await assembler.finalize_artifact(pdf_bytes, current)
    except FinalizationError as exc:
        raise _error_response(exc, correlation_id) from exc

    download_name = finalized_file_name(
        current.source_metadata.file_name,
        artifact.signer_count,
    )

    return Response(
        content=artifact.content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{download_name}"',
            "X-Correlation-ID": correlation_id,
            "X-Document-Digest": artifact.document_digest,
            "X-Protocol-Pages": str(artifact.protocol_page_count),
        },
    )


# =============================================================================
# DELETE /session
# =============================================================================

@router.delete(
    "/session",
    summary="Discard the stored ledger",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def clear_session(
    repository: Annotated[LedgerRepository, Depends(get_repository)],
) -> Response:
    repository.clear()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
