"""Graph data models."""

from typing import List
from pydantic import BaseModel, Field

class GraphNode(BaseModel):
    """Represents a single note (or a missing link target) in the graph."""
    id: str = Field(..., description="Unique identifier (document id, or target identifier when missing)")
    label: str = Field(..., description="Display title of the note")
    val: int = Field(default=1, description="Weight/Size of the node")
    group: str = Field(..., description="Grouping category (e.g., top-level folder)")
    missing: bool = Field(default=False, description="Placeholder for a link target with no document")
    in_degree: int = Field(default=0, ge=0)
    out_degree: int = Field(default=0, ge=0)

class GraphLink(BaseModel):
    """Represents a directed connection between two notes."""
    source: str = Field(..., description="ID of the source note")
    target: str = Field(..., description="ID of the target note or missing placeholder")
    resolved: bool = Field(default=True, description="False when the target has no document")
    weight: int = Field(default=1, ge=1, description="Number of wiki-links behind this edge")

class GraphData(BaseModel):
    """The top-level payload returned by get_graph."""
    nodes: List[GraphNode]
    links: List[GraphLink]
