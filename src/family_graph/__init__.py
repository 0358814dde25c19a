"""Family Graph - relationship graph engine for genealogical networks.

Models a family network as directed, typed relationship edges between
persons and answers structural queries over it: ancestors, descendants,
immediate family and the kinship degree between two people.
"""

__version__ = "0.1.0"

# Lazy imports to avoid circular dependencies
def __getattr__(name: str):
    if name == "RelationshipService":
        from family_graph.service import RelationshipService
        return RelationshipService
    if name == "models":
        from family_graph import models
        return models
    if name == "store":
        from family_graph import store
        return store
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
