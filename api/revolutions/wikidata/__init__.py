from api.revolutions.wikidata.config import ImportConfig, RetryPolicy
from api.revolutions.wikidata.importer import EventImporter, ImportResult
from api.revolutions.wikidata.sparql import WikidataSparqlClient

__all__ = [
    "EventImporter",
    "ImportConfig",
    "ImportResult",
    "RetryPolicy",
    "WikidataSparqlClient",
]
