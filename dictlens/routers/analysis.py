from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from dictlens.errors import WorkspaceUnavailableError
from dictlens.models import (
    AnalysisRequest,
    DefinitionTarget,
    HoverInfo,
    InlineDecoration,
    LocationLink,
    Position,
    ResolutionOrigin,
    UnusedReport,
)
from dictlens.services import engine as ops
from dictlens.services.engine import EngineContext

router = APIRouter(prefix="/api/analysis", tags=["analysis"])


def get_engine(request: Request) -> EngineContext:
    return request.app.state.engine


async def _document(body: AnalysisRequest) -> str:
    text = await ops.read_document(body.file_path, body.text)
    if text is None:
        raise HTTPException(status_code=404, detail="File not found")
    return text


def _position(body: AnalysisRequest) -> Position:
    return Position(line=body.line, character=body.character)


def _workspace_error(e: WorkspaceUnavailableError) -> HTTPException:
    return HTTPException(status_code=409, detail=str(e))


@router.post("/resolve", response_model=Optional[ResolutionOrigin])
async def resolve(body: AnalysisRequest, engine: EngineContext = Depends(get_engine)):
    """Dictionary key and field path of the expression at the given position."""
    text = await _document(body)
    return ops.resolve_origin(engine, body.file_path, text, _position(body))


@router.post("/hover", response_model=Optional[HoverInfo])
async def hover(body: AnalysisRequest, engine: EngineContext = Depends(get_engine)):
    text = await _document(body)
    try:
        return await ops.hover(engine, body.file_path, text, _position(body))
    except WorkspaceUnavailableError as e:
        raise _workspace_error(e)


@router.post("/definition", response_model=List[DefinitionTarget])
async def definition(body: AnalysisRequest, engine: EngineContext = Depends(get_engine)):
    text = await _document(body)
    try:
        return await ops.definitions(engine, body.file_path, text, _position(body))
    except WorkspaceUnavailableError as e:
        raise _workspace_error(e)


@router.post("/content-definition", response_model=List[LocationLink])
async def content_definition(body: AnalysisRequest, engine: EngineContext = Depends(get_engine)):
    """From a content declaration file to the places that read the clicked key."""
    text = await _document(body)
    try:
        return await ops.content_definitions(engine, body.file_path, text, _position(body))
    except WorkspaceUnavailableError as e:
        raise _workspace_error(e)


@router.post("/unused", response_model=Optional[UnusedReport])
async def unused(body: AnalysisRequest, engine: EngineContext = Depends(get_engine)):
    """Debounced per document; a request overtaken by a newer one gets null."""
    text = await _document(body)
    try:
        return await ops.debounced_unused_keys(engine, body.file_path, text)
    except WorkspaceUnavailableError as e:
        raise _workspace_error(e)


@router.post("/decorations", response_model=Optional[List[InlineDecoration]])
async def decorations(body: AnalysisRequest, engine: EngineContext = Depends(get_engine)):
    """Debounced per document; a request overtaken by a newer one gets null."""
    text = await _document(body)
    try:
        return await ops.debounced_decorations(engine, body.file_path, text)
    except WorkspaceUnavailableError as e:
        raise _workspace_error(e)


@router.post("/redirect", response_model=Optional[LocationLink])
async def redirect(body: AnalysisRequest, engine: EngineContext = Depends(get_engine)):
    """Jump from a dictionary key literal to the file that declares it."""
    text = await _document(body)
    try:
        return await ops.redirect_key_to_dictionary(engine, body.file_path, text, _position(body))
    except WorkspaceUnavailableError as e:
        raise _workspace_error(e)
