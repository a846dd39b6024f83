# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Hoy los datos viven en archivos JSON (un archivo por clave). Los servicios
# solo ven las interfaces de interfaces.py.
# ==============================================================================

from .storage import KeyValueStorage, StorageQuotaError
from .document_store import DocumentStore
from .entity_repository import EntityRepository, format_timestamp, parse_timestamp
from .interfaces import IKeyValueStorage, IDocumentStore, IEntityRepository

__all__ = [
    'KeyValueStorage',
    'StorageQuotaError',
    'DocumentStore',
    'EntityRepository',
    'format_timestamp',
    'parse_timestamp',

    # Interfaces
    'IKeyValueStorage',
    'IDocumentStore',
    'IEntityRepository',
]
