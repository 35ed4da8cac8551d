from fastapi import APIRouter, Depends
from typing import Annotated

from ...models.graph import GraphData
from ...services import ToolDispatcher
from ..middleware import get_dispatcher

router = APIRouter()

@router.get("/api/graph", response_model=GraphData)
def get_graph_data(
    dispatcher: Annotated[ToolDispatcher, Depends(get_dispatcher)],
) -> GraphData:
    """Retrieve graph visualization data."""
    return dispatcher.queries.graph_snapshot()
