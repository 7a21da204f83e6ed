# ABOUTME: HTTP client fetching raw forecast payloads for a site
# ABOUTME: Every request is bounded by a timeout; failures raise typed errors for per-site reporting

import logging
import requests
from typing import Optional

from waterman.config import Config
from waterman.forecast.models import Site

log = logging.getLogger(__name__)


class SourceFetchError(Exception):
    """Upstream forecast source could not be reached or answered with an error"""


class SourceTimeoutError(SourceFetchError):
    """Upstream fetch exceeded its timeout"""


class ForecastSourceClient:
    """
    Client for the upstream point-forecast source.

    A site's own url wins; otherwise the configured url template is
    formatted with the site's id and coordinates.
    """

    def __init__(self, url_template: str = None, timeout: float = None):
        self.url_template = url_template or Config.FORECAST_SOURCE_URL
        self.timeout = timeout if timeout is not None else Config.SOURCE_TIMEOUT_SECONDS

    def url_for(self, site: Site) -> str:
        if site.url:
            return site.url
        return self.url_template.format(
            site_id=site.id,
            lat=site.latitude if site.latitude is not None else "",
            lon=site.longitude if site.longitude is not None else "",
        )

    def fetch(self, site: Site, timeout: Optional[float] = None) -> str:
        """
        Fetch the raw forecast payload for a site.

        Args:
            site: Site to fetch
            timeout: Seconds before giving up (defaults to the client timeout)

        Returns:
            Raw response body

        Raises:
            SourceTimeoutError: request exceeded the timeout
            SourceFetchError: network failure or non-200 response
        """
        url = self.url_for(site)
        headers = {
            "Accept": "application/json",
            "User-Agent": "Mozilla/5.0 (compatible; Waterman/1.0)"
        }
        timeout = timeout if timeout is not None else self.timeout

        try:
            response = requests.get(url, headers=headers, timeout=timeout)
        except requests.Timeout as e:
            log.error(f"Forecast source timed out after {timeout}s for {site.name}")
            raise SourceTimeoutError(f"Timed out after {timeout}s fetching {url}") from e
        except requests.RequestException as e:
            log.error(f"Forecast source request failed for {site.name}: {e}")
            raise SourceFetchError(f"Request failed for {url}: {e}") from e

        if response.status_code != 200:
            log.error(f"Forecast source HTTP error for {site.name}: {response.status_code}")
            raise SourceFetchError(f"HTTP {response.status_code} from {url}")

        return response.text
