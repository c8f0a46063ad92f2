"""
Client for a remote glass catalog API serving the /glass endpoints.

Used to pull a shared catalog into the local store
(CatalogStore.reload_from_remote) and to push admin edits back.
"""

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import List, Optional

from .config import settings
from .errors import RemoteCatalogError
from .schemas import GlassCatalogEntry, PriceRequest, PriceResult, ProcessingOption, Supplier

logger = logging.getLogger(__name__)


class RemoteCatalogClient:

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 timeout: Optional[float] = None):
        self.base_url = (base_url if base_url is not None else settings.CATALOG_API_BASE).rstrip("/")
        self.token = token if token is not None else settings.CATALOG_API_TOKEN
        self.timeout = timeout if timeout is not None else settings.CATALOG_API_TIMEOUT
        if not self.base_url:
            raise RemoteCatalogError("CATALOG_API_BASE is not configured")

    def _request(self, method: str, path: str, body=None, params: Optional[list] = None):
        url = f"{self.base_url}{path}"
        if params:
            url += "?" + urllib.parse.urlencode(params)

        headers = {"Accept": "application/json"}
        data = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        req = urllib.request.Request(url, data=data, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                return json.loads(response.read())
        except urllib.error.HTTPError as e:
            logger.error("Catalog API %s %s failed: HTTP %s", method, path, e.code)
            raise RemoteCatalogError(f"{method} {path} returned HTTP {e.code}") from e
        except urllib.error.URLError as e:
            logger.error("Catalog API %s %s unreachable: %s", method, path, e.reason)
            raise RemoteCatalogError(f"{method} {path} failed: {e.reason}") from e

    # --- Reads ---

    def get_glass_types(self) -> List[GlassCatalogEntry]:
        return [GlassCatalogEntry.model_validate(item) for item in self._request("GET", "/glass/types")]

    def get_processing_options(self) -> List[ProcessingOption]:
        return [
            ProcessingOption.model_validate(item)
            for item in self._request("GET", "/glass/processing-options")
        ]

    def get_suppliers(self) -> List[Supplier]:
        return [Supplier.model_validate(item) for item in self._request("GET", "/glass/suppliers")]

    def calculate_price(self, request: PriceRequest) -> PriceResult:
        params = [
            ("glass_type_id", request.glass_type_id),
            ("toughened", str(request.toughened).lower()),
            ("thickness_mm", request.thickness_mm),
            ("width_mm", request.width_mm),
            ("height_mm", request.height_mm),
            ("quantity", request.quantity),
        ]
        if request.customer_tier is not None:
            params.append(("customer_tier", request.customer_tier.value))
        if request.template_id:
            params.append(("template_id", request.template_id))
        if request.customer_id:
            params.append(("customer_id", request.customer_id))
        params.extend(("processing", s.to_query()) for s in request.processing_selections)
        return PriceResult.model_validate(
            self._request("GET", "/glass/calculate-price", params=params)
        )

    # --- Writes ---

    def create_glass_type(self, entry: GlassCatalogEntry) -> GlassCatalogEntry:
        data = self._request("POST", "/glass/types", body=entry.model_dump(mode="json"))
        return GlassCatalogEntry.model_validate(data)

    def update_processing_option(self, option: ProcessingOption) -> ProcessingOption:
        path = f"/glass/processing-options/{urllib.parse.quote(option.id, safe='')}"
        data = self._request("PUT", path, body=option.model_dump(mode="json"))
        return ProcessingOption.model_validate(data)
