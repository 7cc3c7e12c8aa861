"""
GeoIP lookup service.

Resolves public IP addresses to a location using a MaxMind GeoLite2 City
database. Lookups never raise: blank, malformed, loopback and private
addresses, unknown addresses and reader errors all yield None, which the
matching engine treats as "no geo evidence". Successful lookups are cached
by IP through api.cache.
"""

import ipaddress
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

import geoip2.database
import geoip2.errors

from api.cache import cache_get, cache_set
from fingerprint.config import GeoIpSettings
from fingerprint.models import GeoLocation
from fingerprint.utils.geo import is_valid_coordinates

logger = logging.getLogger(__name__)

CACHE_PREFIX = "geoip"

# RFC1918 ranges plus IPv6 unique-local and link-local prefixes
PRIVATE_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
)


@dataclass
class GeoInfo:
    """Location details for one IP address."""
    country_code: Optional[str] = None
    country_name: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timezone: Optional[str] = None
    continent_code: Optional[str] = None
    continent_name: Optional[str] = None
    isp: Optional[str] = None
    organization: Optional[str] = None
    asn: Optional[int] = None
    as_organization: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "GeoInfo":
        return cls(**{k: data.get(k) for k in cls.__dataclass_fields__})

    def to_geo_location(self) -> GeoLocation:
        """Domain location used for scoring; extra carries the descriptive fields."""
        extra = {
            key: value
            for key, value in (
                ("countryName", self.country_name),
                ("postalCode", self.postal_code),
                ("continentCode", self.continent_code),
                ("continentName", self.continent_name),
                ("isp", self.isp),
                ("organization", self.organization),
                ("asn", self.asn),
                ("asOrganization", self.as_organization),
            )
            if value is not None
        }
        return GeoLocation(
            country=self.country_code,
            region=self.region,
            city=self.city,
            timezone=self.timezone,
            latitude=self.latitude,
            longitude=self.longitude,
            extra=extra or None,
        )


def parse_ip(ip: Optional[str]):
    """Parse an address, dropping an IPv4 ":port" suffix. None if malformed."""
    if not ip or not ip.strip():
        return None
    ip = ip.strip()
    if ip.count(":") == 1 and "." in ip:
        ip = ip.split(":", 1)[0]
    try:
        return ipaddress.ip_address(ip)
    except ValueError:
        return None


def is_local_or_private(address) -> bool:
    """Loopback, unspecified, RFC1918 or IPv6 local addresses."""
    if getattr(address, "ipv4_mapped", None) is not None:
        address = address.ipv4_mapped
    if address.is_loopback or address.is_unspecified:
        return True
    return any(address in network for network in PRIVATE_NETWORKS if network.version == address.version)


class GeoIpService:
    """
    Look up locations for IP addresses.

    Example:
        service = GeoIpService.from_settings(settings.geoip)
        info = service.lookup("8.8.8.8")  # GeoInfo or None
    """

    def __init__(self, reader=None, cache_ttl: int = 86400):
        self._reader = reader
        self.cache_ttl = cache_ttl

    @classmethod
    def from_settings(cls, geoip_settings: GeoIpSettings) -> "GeoIpService":
        """Open the configured database; a disabled or missing database gives a no-op service."""
        if not geoip_settings.enabled:
            logger.info("GeoIP lookup disabled")
            return cls(reader=None, cache_ttl=geoip_settings.cache_ttl)

        path = Path(geoip_settings.database_path)
        if not path.exists():
            logger.warning(f"GeoIP database not found at {path}, geo lookups disabled")
            return cls(reader=None, cache_ttl=geoip_settings.cache_ttl)

        try:
            reader = geoip2.database.Reader(str(path))
        except Exception as e:
            logger.error(f"Failed to open GeoIP database {path}: {e}")
            return cls(reader=None, cache_ttl=geoip_settings.cache_ttl)

        logger.info(f"GeoIP database loaded from {path}")
        return cls(reader=reader, cache_ttl=geoip_settings.cache_ttl)

    @property
    def enabled(self) -> bool:
        return self._reader is not None

    def close(self) -> None:
        if self._reader is not None:
            self._reader.close()
            self._reader = None

    def lookup(self, ip: Optional[str]) -> Optional[GeoInfo]:
        if not self.enabled:
            return None

        address = parse_ip(ip)
        if address is None:
            logger.debug(f"Skipping GeoIP lookup for blank or malformed address: {ip!r}")
            return None
        if is_local_or_private(address):
            logger.debug(f"IP address {address} is local or private, skipping lookup")
            return None

        key = f"{CACHE_PREFIX}:{address}"
        try:
            cached = cache_get(key)
        except Exception as e:
            logger.warning(f"GeoIP cache read failed for {address}: {e}")
            cached = None
        if cached is not None:
            return GeoInfo.from_dict(cached)

        try:
            response = self._reader.city(str(address))
        except geoip2.errors.AddressNotFoundError:
            logger.debug(f"IP address {address} not found in GeoIP database")
            return None
        except ValueError:
            logger.warning(f"Invalid IP address format: {ip}")
            return None
        except Exception as e:
            logger.error(f"GeoIP lookup error for IP {address}: {e}")
            return None

        info = self._build_geo_info(response)
        try:
            cache_set(key, info.to_dict(), ttl=self.cache_ttl)
        except Exception as e:
            logger.warning(f"GeoIP cache write failed for {address}: {e}")
        logger.debug(f"GeoIP lookup for {address}: country={info.country_code} city={info.city}")
        return info

    @staticmethod
    def _build_geo_info(response) -> GeoInfo:
        location = response.location
        lat, lon = location.latitude, location.longitude
        if lat is None or lon is None or not is_valid_coordinates(lat, lon):
            lat, lon = None, None
        traits = response.traits
        return GeoInfo(
            country_code=response.country.iso_code,
            country_name=response.country.name,
            region=response.subdivisions.most_specific.name,
            city=response.city.name,
            postal_code=response.postal.code,
            latitude=lat,
            longitude=lon,
            timezone=location.time_zone,
            continent_code=response.continent.code,
            continent_name=response.continent.name,
            isp=getattr(traits, "isp", None),
            organization=getattr(traits, "organization", None),
            asn=getattr(traits, "autonomous_system_number", None),
            as_organization=getattr(traits, "autonomous_system_organization", None),
        )
