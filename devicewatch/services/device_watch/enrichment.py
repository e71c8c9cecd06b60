"""
Best-effort enrichment of the decision context (hostname, location).

Lookups never raise to the caller: failures become the fixed fallback
strings so the notification still goes out.
"""

import logging
import socket
from abc import ABC, abstractmethod
from typing import Callable, Optional

from .types import DecisionContext, HOST_UNRESOLVED, Location

logger = logging.getLogger("devicewatch.device_watch")

HostnameLookup = Callable[[str], str]


def reverse_dns(address: str) -> str:
    """PTR lookup via the system resolver."""
    return socket.gethostbyaddr(address)[0]


def resolve_hostname(address: str, lookup: HostnameLookup = reverse_dns) -> str:
    if not address:
        return HOST_UNRESOLVED
    try:
        hostname = lookup(address)
    except Exception as e:
        logger.info(f"[device_watch] reverse DNS failed for {address}: {e}")
        return HOST_UNRESOLVED
    if not hostname or hostname == address:
        return HOST_UNRESOLVED
    return hostname


class LocationResolver(ABC):
    """Maps an IP address to a Location."""

    @abstractmethod
    def lookup(self, address: str) -> Location:
        pass


class NullLocationResolver(LocationResolver):
    """Used when no GeoIP database is configured."""

    def lookup(self, address: str) -> Location:
        return Location()


class GeoIPLocationResolver(LocationResolver):
    """MaxMind GeoLite2-City lookups."""

    def __init__(self, db_path: str):
        import geoip2.database

        self.reader = geoip2.database.Reader(db_path)

    def lookup(self, address: str) -> Location:
        import geoip2.errors

        try:
            response = self.reader.city(address)
        except geoip2.errors.AddressNotFoundError:
            return Location()

        city = response.city.name
        region = response.subdivisions.most_specific.name
        country = response.country.name
        parts = [p for p in (city, region, country) if p]
        if not parts:
            return Location()
        return Location(
            human=", ".join(parts),
            city=city,
            region=region,
            country_long=country,
        )

    def close(self) -> None:
        self.reader.close()


def resolve_location(address: str, resolver: Optional[LocationResolver]) -> Location:
    if not address or resolver is None:
        return Location()
    try:
        return resolver.lookup(address) or Location()
    except Exception as e:
        logger.warning(f"[device_watch] location lookup failed for {address}: {e}")
        return Location()


def enrich(
    context: DecisionContext,
    location_resolver: Optional[LocationResolver],
    hostname_lookup: HostnameLookup = reverse_dns,
) -> DecisionContext:
    return context.with_enrichment(
        location=resolve_location(context.remote_address, location_resolver),
        hostname=resolve_hostname(context.remote_address, hostname_lookup),
    )
