"""
Translation of resolver responses into indexer events.

One entry per response type; a response mapped to None is of no interest to
the indexer and is dropped.
"""

from typing import Any, Callable, Dict, Optional

from . import events
from .resolvers import contract, metadata

RESPONSE_EVENTS: Dict[type, Callable[[Any], Optional[events.Event]]] = {
    # Contract resolver
    contract.ContractResolved: lambda r: events.ContractFound(r.contract.address, r.contract.name),
    contract.NoContract: lambda r: events.ContractNotFound(r.address),
    contract.ContractFailed: lambda r: events.ContractLookupFailed(r.address, r.attempts),
    contract.UriResolved: lambda r: events.UriFound(r.address, r.uri, r.token),
    contract.NoUri: lambda r: events.UriLookupFailed(r.address),
    contract.UriFailed: lambda r: events.UriLookupFailed(r.address),
    contract.TotalSupplyResolved: lambda r: events.TotalSupplyFound(r.address, r.total_supply),
    contract.NoTotalSupply: lambda r: None,
    contract.TotalSupplyFailed: lambda r: None,
    # Metadata fetcher
    metadata.MetadataCompleted: lambda r: events.MetadataResolved(r.url, r.token, r.metadata, r.subject),
    metadata.MetadataNotFound: lambda r: events.TokenNotFound(r.token, r.subject),
    metadata.MetadataFailed: lambda r: events.MetadataLookupFailed(r.token, r.subject, r.message),
    metadata.MetadataRedirect: lambda r: events.MetadataRedirected(r.url, r.location, r.token, r.subject),
}


def to_event(response: Any) -> Optional[events.Event]:
    """Event for a resolver response, None if the indexer ignores it"""
    translate = RESPONSE_EVENTS.get(type(response))
    if translate is None:
        raise TypeError(f"No event mapping for {type(response).__name__}")
    return translate(response)
