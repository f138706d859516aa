"""
Entities Package — SQLAlchemy 2.0 ORM Models (PostgreSQL + UUID + UTC)
======================================================================

ORM models of the maintenance application. DAOs (`daos` package) consume them
to implement CRUD and transactional operations.

Conventions
-----------
- PostgreSQL native UUID columns
- Timezone-aware timestamps (UTC)
- SQLAlchemy 2.0 style `Mapped[...]` + `mapped_column(...)`
- JSON columns for extraction payloads and embedding vectors

Contents
--------
- AppUser               : login identity, role, organization
- Asset                 : equipment record plus multi-pass extraction payloads
- AssetAlias            : plant nicknames used by alias resolution
- AssetDocument         : attached manual/schematic, fingerprint, classification
- DocumentChunk         : chunk text + embedding for retrieval
- AssetDependency       : confirmed "depends on" edges
- DependencySuggestion  : AI-proposed edges awaiting review
- MetadataCacheEntry    : cached document metadata keyed by content hash
- WorkOrder / WorkOrderPart : interventions and consumed parts
- InventoryPart         : spare parts in stock
- Conversation / ConversationMessage : assistant history per user and asset

Importing this package registers every table on the shared metadata.
"""

from opengmao.database.entities.user import AppUser
from opengmao.database.entities.asset import Asset
from opengmao.database.entities.asset_alias import AssetAlias
from opengmao.database.entities.asset_document import AssetDocument
from opengmao.database.entities.document_chunk import DocumentChunk
from opengmao.database.entities.asset_dependency import AssetDependency, DependencySuggestion
from opengmao.database.entities.metadata_cache import MetadataCacheEntry
from opengmao.database.entities.inventory_part import InventoryPart
from opengmao.database.entities.work_order import WorkOrder, WorkOrderPart
from opengmao.database.entities.conversations import Conversation
from opengmao.database.entities.messages import ConversationMessage
