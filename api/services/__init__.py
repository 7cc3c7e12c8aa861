"""
Request-boundary services for the fingerprint API.

Client IP resolution from proxy headers and GeoIP lookup for attaching
location evidence to observations.
"""

from .client_ip import extract_client_ip, get_client_ip
from .geoip import GeoInfo, GeoIpService

__all__ = [
    "GeoInfo",
    "GeoIpService",
    "extract_client_ip",
    "get_client_ip",
]
