"""API router exposing document analysis, chat and session endpoints."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from legallens.dependencies import get_chat_service, get_document_service
from legallens.errors import ContextNotFound, LegalLensError, SessionNotFound, SessionWriteConflict
from legallens.services.chat import ChatService
from legallens.services.documents import DocumentService

router = APIRouter(tags=["documents"])

DOCUMENT_NOT_FOUND = "document not found"
SESSION_NOT_FOUND = "chat session not found"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnalyzeRequest(CamelModel):
    """Request body accepted by the upload endpoint."""

    extracted_text: str = Field(..., description="Plain text extracted from the uploaded document.")
    document_name: str = Field(..., min_length=1, description="Display name of the document.")
    document_id: str | None = Field(None, min_length=1, description="Identifier to store the document under.")


class AnalyzeResponse(CamelModel):
    document_id: str
    analysis: dict[str, Any]


class DocumentResponse(CamelModel):
    """Stored context of a document, without its full text."""

    document_id: str
    document_name: str
    summary: str
    chunk_count: int
    key_entities: list[str]
    risk_factors: list[str]
    created_at: str
    last_updated: str


class ChatRequest(CamelModel):
    query: str = Field(..., description="Question about the document.")


class ChatResponse(CamelModel):
    reply_text: str
    response_time_ms: float
    tokens_used: int
    context_chunk_ids: list[str]
    failed: bool


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail=DOCUMENT_NOT_FOUND)


@router.post("/documents", response_model=AnalyzeResponse)
async def analyze_document(
    request: AnalyzeRequest,
    service: DocumentService = Depends(get_document_service),
) -> AnalyzeResponse:
    """Analyse extracted text and register the document for chat."""

    if not request.extracted_text.strip():
        raise HTTPException(status_code=422, detail="Extracted text must not be empty")

    try:
        result = await service.analyze_document(
            request.extracted_text,
            request.document_name,
            document_id=request.document_id,
        )
    except LegalLensError as exc:
        raise HTTPException(status_code=502, detail=f"Document analysis failed: {exc}") from exc
    return AnalyzeResponse(document_id=result.document_id, analysis=result.to_dict())


@router.get("/documents/{document_id}", response_model=DocumentResponse)
def read_document(
    document_id: str,
    service: DocumentService = Depends(get_document_service),
) -> DocumentResponse:
    try:
        context = service.get_context(document_id)
    except ContextNotFound as exc:
        raise _not_found() from exc
    return DocumentResponse(
        document_id=context.document_id,
        document_name=context.document_name,
        summary=context.summary,
        chunk_count=len(context.chunks),
        key_entities=context.key_entities,
        risk_factors=context.risk_factors,
        created_at=context.created_at,
        last_updated=context.last_updated,
    )


@router.get("/documents/{document_id}/analysis")
def read_analysis(
    document_id: str,
    service: DocumentService = Depends(get_document_service),
) -> dict[str, Any]:
    try:
        return service.get_report(document_id)
    except ContextNotFound as exc:
        raise _not_found() from exc


@router.delete("/documents/{document_id}", status_code=204)
def delete_document(
    document_id: str,
    service: DocumentService = Depends(get_document_service),
) -> Response:
    if not service.delete_document(document_id):
        raise HTTPException(status_code=404, detail=DOCUMENT_NOT_FOUND)
    return Response(status_code=204)


@router.get("/documents/{document_id}/session")
def read_session(
    document_id: str,
    service: DocumentService = Depends(get_document_service),
) -> dict[str, Any]:
    try:
        return service.get_session(document_id).to_dict()
    except SessionNotFound as exc:
        raise HTTPException(status_code=404, detail=SESSION_NOT_FOUND) from exc
    except ContextNotFound as exc:
        raise _not_found() from exc


@router.get("/sessions")
def list_sessions(service: DocumentService = Depends(get_document_service)) -> list[dict[str, Any]]:
    """Return every chat session, most recently updated first."""

    return [session.to_dict() for session in service.list_sessions()]


@router.post("/documents/{document_id}/chat", response_model=ChatResponse)
async def chat_with_document(
    document_id: str,
    request: ChatRequest,
    service: ChatService = Depends(get_chat_service),
) -> ChatResponse:
    """Answer a question about the document and record the exchange."""

    if not request.query.strip():
        raise HTTPException(status_code=422, detail="Query must not be empty")

    try:
        result = await service.chat_turn(document_id, request.query)
    except ContextNotFound as exc:
        raise _not_found() from exc
    except SessionWriteConflict as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return ChatResponse(
        reply_text=result.reply_text,
        response_time_ms=result.response_time_ms,
        tokens_used=result.tokens_used,
        context_chunk_ids=result.context_chunk_ids,
        failed=result.failed,
    )
