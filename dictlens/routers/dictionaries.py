from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from dictlens.errors import WorkspaceUnavailableError
from dictlens.models import DictionaryRecord, Position, UsageLocation
from dictlens.routers.analysis import get_engine
from dictlens.services import engine as ops
from dictlens.services.engine import EngineContext
from dictlens.services.field_locator import locate_field

router = APIRouter(prefix="/api/dictionaries", tags=["dictionaries"])


@router.get("/usages", response_model=List[UsageLocation])
async def get_usages(
    key: str = Query(..., description="Dictionary key"),
    project: Optional[str] = Query(None, description="Project root; defaults to the workspace root"),
    engine: EngineContext = Depends(get_engine),
):
    """
    Every source file that reads the dictionary, with the fields it uses.

    An empty list means the dictionary is not used anywhere in the project.
    """
    try:
        return await ops.dictionary_usages(engine, key, project)
    except WorkspaceUnavailableError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/locate", response_model=Position)
async def locate(
    file_path: str = Query(..., description="Absolute path to a content declaration file"),
    path: str = Query("", description="Dotted field path, e.g. content.nav.home"),
    engine: EngineContext = Depends(get_engine),
):
    field_path = [segment for segment in path.split(".") if segment]
    position = await locate_field(file_path, field_path, engine.parse_context)
    if position is None:
        raise HTTPException(status_code=404, detail="Field not found")
    return position


@router.get("/projects", response_model=List[str])
async def get_projects(engine: EngineContext = Depends(get_engine)):
    """Project roots under the workspace whose package.json depends on the framework."""
    try:
        return await ops.project_roots(engine)
    except WorkspaceUnavailableError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/{key}", response_model=List[DictionaryRecord])
async def get_dictionary(
    key: str,
    project: Optional[str] = Query(None),
    engine: EngineContext = Depends(get_engine),
):
    try:
        records = await ops.dictionary_records(engine, key, project)
    except WorkspaceUnavailableError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if records is None:
        raise HTTPException(status_code=404, detail="Dictionary not found")
    return records
