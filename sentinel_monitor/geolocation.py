"""
IP geolocation for behavioral analysis.

Resolution is best-effort: a lookup miss, malformed address or reader error
yields None ("unknown location") and never raises to the caller.
"""

import ipaddress
import logging
from typing import Mapping, Optional

import geoip2.database
import geoip2.errors

logger = logging.getLogger(__name__)


class GeoResolver:
    """Maps an IP address to an ISO country code"""

    def resolve(self, ip: str) -> Optional[str]:
        raise NotImplementedError

    def close(self) -> None:
        pass


class NullGeoResolver(GeoResolver):
    """Resolver used when no geolocation database is configured"""

    def resolve(self, ip: str) -> Optional[str]:
        return None


class StaticGeoResolver(GeoResolver):
    """Resolver backed by a fixed ip -> country mapping"""

    def __init__(self, mapping: Mapping[str, str]):
        self.mapping = dict(mapping)

    def resolve(self, ip: str) -> Optional[str]:
        return self.mapping.get(ip)


class GeoIP2Resolver(GeoResolver):
    """Resolver backed by a MaxMind GeoIP2/GeoLite2 country or city database"""

    def __init__(self, database_path: Optional[str] = None, reader=None):
        if reader is None:
            if not database_path:
                raise ValueError("database_path or reader is required")
            reader = geoip2.database.Reader(database_path)
            logger.info(f"GeoIP database loaded from {database_path}")
        self.reader = reader
        self._lookup = self._pick_lookup(reader)

    @staticmethod
    def _pick_lookup(reader):
        # Country databases only answer country(); city databases answer both
        metadata = getattr(reader, "metadata", None)
        database_type = metadata().database_type if callable(metadata) else ""
        if isinstance(database_type, str) and "City" in database_type:
            return reader.city
        return reader.country

    def resolve(self, ip: str) -> Optional[str]:
        if not ip:
            return None
        try:
            address = ipaddress.ip_address(str(ip).strip())
        except ValueError:
            logger.debug(f"Not an IP address, skipping geolocation: {ip}")
            return None
        if address.is_private or address.is_loopback:
            return None
        try:
            response = self._lookup(str(address))
        except geoip2.errors.AddressNotFoundError:
            return None
        except Exception as e:
            logger.warning(f"GeoIP lookup failed for {ip}: {e}")
            return None
        return response.country.iso_code

    def close(self) -> None:
        close = getattr(self.reader, "close", None)
        if close:
            close()


def create_geo_resolver(database_path: Optional[str]) -> GeoResolver:
    """
    Create a GeoIP2 resolver for ``database_path``, or a NullGeoResolver when
    the path is unset or the database cannot be opened.
    """
    if not database_path:
        logger.info("GeoIP database not configured; geographic anomaly detection disabled")
        return NullGeoResolver()
    try:
        return GeoIP2Resolver(database_path)
    except Exception as e:
        logger.error(f"Failed to load GeoIP database: {e}")
        return NullGeoResolver()
