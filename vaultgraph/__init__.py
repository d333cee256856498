# vaultgraph: document graph core for a knowledge-base site generator
#
# Package structure:
# - config.py: Settings loaded from VAULTGRAPH_* environment variables
# - logging.py: structlog configuration
# - utils.py: Regex patterns, front matter and date helpers, exceptions
# - identifiers.py: Canonical IDs and collision suffixing
# - values.py: Typed metadata values
# - diagnostics.py: Soft warnings collected during a run
# - models.py: Pydantic models for documents, collections and views
# - filters.py: Filter expression parsing
# - store.py: Document store assembly and link resolution
# - graph.py: Link graph and backlinks
# - query.py: Filter evaluation and sorting
# - formulas.py: Formula language for derived properties
# - collections_store.py: Collection parsing and evaluation
# - render.py / embeds.py: Recursive embed expansion
# - loader.py: Concurrent vault ingestion
# - indices.py: Tag, category, folder and search indices
# - pipeline.py: Phase orchestration
# - cache.py: SiteGraphCache for the tool server
# - tools.py: MCP tool handlers and server instance
# - main.py: Entry point
