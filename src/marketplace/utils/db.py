"""Schema management for SQL-backed providers.

The memory provider needs no schema; these helpers only act on providers
whose ``provider`` is ``sqlite`` or ``postgresql`` (the production overlay).
"""

import structlog
from protean.domain import Domain
from sqlalchemy import create_engine

logger = structlog.get_logger(__name__)

SQL_PROVIDERS = ("sqlite", "postgresql")


def _sql_providers(domain: Domain):
    for name, provider in domain.providers.items():
        if provider.conn_info["provider"] in SQL_PROVIDERS:
            yield name, provider


def _register_models(domain: Domain, provider) -> None:
    """Touch each repository's DAO so its SQLAlchemy model is added to the provider metadata."""
    records = list(domain.registry.aggregates.values()) + list(domain.registry.entities.values())
    for record in records:
        if record.cls.meta_.provider == provider.name:
            domain.repository_for(record.cls)._dao  # noqa: B018


def setup_db(domain: Domain) -> list[str]:
    """Create tables for every SQL provider; returns the provider names touched."""
    touched = []
    with domain.domain_context():
        for name, provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            _register_models(domain, provider)
            provider._metadata.create_all(engine)
            logger.info("Database schema created", provider=name, tables=len(provider._metadata.tables))
            touched.append(name)
    return touched


def drop_db(domain: Domain) -> list[str]:
    """Drop every table owned by the SQL providers."""
    touched = []
    with domain.domain_context():
        for name, provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            _register_models(domain, provider)
            provider._metadata.drop_all(engine)
            logger.info("Database schema dropped", provider=name)
            touched.append(name)
    return touched
