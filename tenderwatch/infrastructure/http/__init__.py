from .client import FetchResult, MercadoPublicoClient, records_from_listing

__all__ = [
    "FetchResult",
    "MercadoPublicoClient",
    "records_from_listing",
]
