"""
Fingerprint collection API.

POST a fingerprint snapshot; the server resolves the caller's IP, attaches
GeoIP location, and matches it against known devices. A match answers 200
with the existing device id, a new device answers 201.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response, status

from api.dependencies import get_fingerprint_service, get_geoip_service
from api.schemas import ErrorResponse, FingerprintRequest, FingerprintResponse
from api.services.client_ip import get_client_ip
from api.services.geoip import GeoIpService
from fingerprint.service import FingerprintService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "",
    response_model=FingerprintResponse,
    responses={
        201: {"model": FingerprintResponse, "description": "Stored as a new device"},
        400: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
def collect_fingerprint(
    payload: FingerprintRequest,
    request: Request,
    response: Response,
    service: FingerprintService = Depends(get_fingerprint_service),
    geoip: GeoIpService = Depends(get_geoip_service),
):
    """
    Collect and match a device fingerprint.

    The geo lookup uses the resolved client IP and falls back to the
    network address the client reported.
    """
    client_ip = get_client_ip(request)
    logger.info(f"Received fingerprint for visitorId={payload.visitor_id}, clientIp={client_ip}")

    observation = payload.to_observation()
    geo_info = geoip.lookup(client_ip)
    if geo_info is None and observation.ip_address != client_ip:
        geo_info = geoip.lookup(observation.ip_address)
    if geo_info is not None:
        observation = observation.with_geo(geo_info.to_geo_location())

    outcome = service.handle(observation)

    if not outcome.matched:
        response.status_code = status.HTTP_201_CREATED
    return FingerprintResponse.from_outcome(outcome)
