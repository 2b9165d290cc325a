from protean.domain import Domain
from sqlalchemy import create_engine

_SQL_PROVIDERS = ("sqlite", "postgresql")


def _sql_providers(domain: Domain):
    for _, provider in domain.providers.items():
        if provider.conn_info["provider"] in _SQL_PROVIDERS:
            yield provider


def setup_db(domain: Domain) -> list[str]:
    """Create tables for every aggregate and entity stored in a SQL provider.

    Returns the names of the providers whose schema was created. In-memory
    providers need no schema and are skipped.
    """
    created = []
    with domain.domain_context():
        for provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])

            # Touching the DAO registers the element's table with the provider metadata
            records = list(domain.registry.aggregates.values()) + list(domain.registry.entities.values())
            for record in records:
                if record.cls.meta_.provider == provider.name:
                    domain.repository_for(record.cls)._dao  # noqa: B018

            provider._metadata.create_all(engine)
            created.append(provider.name)
    return created


def drop_db(domain: Domain) -> list[str]:
    """Drop the tables created by :func:`setup_db`."""
    dropped = []
    with domain.domain_context():
        for provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            provider._metadata.drop_all(engine)
            dropped.append(provider.name)
    return dropped
