"""
The `database` package is responsible for all interactions with the application's database.
It provides configuration, entity definitions, CRUD operations, and the transactional
service functions the routers call.

Contents:
    - config:
        Settings (pydantic-settings) and the SQLAlchemy engine / declarative base.

    - entities:
        SQLAlchemy entity models: users, assets, aliases, documents, chunks,
        dependencies, suggestions, metadata cache, work orders, inventory,
        conversations and messages.

    - daos:
        Data Access Objects (DAOs) providing CRUD operations for the entities.

    - core:
        Service functions that connect the routers with the database
        and orchestrate higher-level operations.

    - helpers:
        Transaction management and identifier coercion.
"""
