"""
QR Provider

Fetches QR code PNGs from a Google-Image-Charts compatible chart service.
"""

import logging

import requests

from errors import FetchError
from settings import DEFAULT_QR_SERVICE_URL


def fetch_qr(target_url: str, size: int = 300, service_url: str = DEFAULT_QR_SERVICE_URL,
             timeout: float = 20) -> bytes:
    """
    Fetch a QR code image encoding ``target_url``.

    Args:
        target_url: Text to encode, usually the verification URL
        size: Edge length of the square image in pixels
        service_url: Chart service endpoint
        timeout: Request timeout in seconds

    Returns:
        PNG image bytes

    Raises:
        FetchError: If the service is unreachable or answers with a non-200 status
    """
    params = {
        "cht": "qr",
        "chs": f"{size}x{size}",
        "chld": "L|0",
        "chl": target_url,
    }
    try:
        resp = requests.get(service_url, params=params, timeout=timeout)
    except requests.exceptions.Timeout:
        raise FetchError("QR service timed out")
    except requests.exceptions.RequestException as e:
        raise FetchError(f"QR service unreachable: {str(e)}")

    if resp.status_code != 200:
        raise FetchError(f"QR fetch failed with HTTP {resp.status_code}", status_code=resp.status_code)

    logging.info(f"Fetched {size}x{size} QR code ({len(resp.content)} bytes)")
    return resp.content
