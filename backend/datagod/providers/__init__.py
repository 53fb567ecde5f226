from datagod.providers.base import (  # noqa: F401
    COMPLETED,
    FAILED,
    PROCESSING,
    FulfillmentProvider,
    FulfillmentRequest,
    ProviderResult,
    VerifyResult,
    classify_provider_status,
)
from datagod.providers.codecraft import CodeCraftProvider  # noqa: F401
from datagod.providers.datakazina import DataKazinaProvider  # noqa: F401
from datagod.providers.mtn import MTNProvider  # noqa: F401


def default_providers() -> dict:
    """Provider per network family, configured from app config."""
    return {p.family: p for p in (CodeCraftProvider(), MTNProvider())}


def mtn_upstreams() -> dict:
    """Selectable MTN upstreams keyed by the mtn_provider_selection setting value."""
    return {"sykes": MTNProvider(), "datakazina": DataKazinaProvider()}
