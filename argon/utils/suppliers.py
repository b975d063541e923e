"""Supplier SDS APIs.

Looks up products and their safety data sheets at the large chemical
suppliers and downloads new revisions. Supported suppliers:

* VWR (Avantor)
* Sigma-Aldrich (Merck)
* Fisher Scientific (Thermo Fisher)

Every client swallows transport and decoding errors, logs them, and returns
``None``; a supplier that cannot be reached simply reports no update.
"""
import logging
import re
from datetime import datetime
from typing import Any
from urllib.parse import quote

from httpx import AsyncClient, HTTPError
from pydantic import BaseModel, ValidationError, field_validator

from argon.utils.dates import as_naive_utc

log = logging.getLogger("argon.suppliers")


class SupplierProduct(BaseModel):
    catalog_number: str
    product_name: str | None = None
    cas_number: str | None = None
    manufacturer: str | None = None


class SupplierSdsInfo(BaseModel):
    product: SupplierProduct
    sds_available: bool = False
    sds_url: str | None = None
    sds_version: str | None = None
    sds_last_updated: datetime | None = None
    download_url: str | None = None

    @field_validator("sds_last_updated")
    @classmethod
    def normalize_date(cls, value):
        return as_naive_utc(value)


class UpdateCheck(BaseModel):
    has_update: bool
    sds_info: SupplierSdsInfo | None = None


class SupplierAPI:
    key: str = ""

    def __init__(self, http: AsyncClient, api_key: str):
        self.http = http
        self.api_key = api_key

    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }

    def download_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def product_url(self, catalog_number: str) -> str:
        raise NotImplementedError

    def sds_url(self, catalog_number: str) -> str:
        raise NotImplementedError

    def parse_product(self, data: dict) -> SupplierProduct | None:
        raise NotImplementedError

    def parse_sds(self, data: dict, product: SupplierProduct) -> SupplierSdsInfo:
        raise NotImplementedError

    async def _get_json(self, url: str) -> Any:
        try:
            response = await self.http.get(url, headers=self.headers())
        except HTTPError as exc:
            log.warning("%s request to %s failed: %s", self.key, url, exc)
            return None

        if response.is_error:
            log.warning("%s API error %s for %s", self.key, response.status_code, url)
            return None

        try:
            return response.json()
        except ValueError:
            log.warning("%s returned invalid JSON for %s", self.key, url)
            return None

    async def search_product(self, catalog_number: str) -> SupplierProduct | None:
        data = await self._get_json(self.product_url(catalog_number))
        if not data:
            return None
        try:
            return self.parse_product(data)
        except (KeyError, TypeError, AttributeError, ValidationError) as exc:
            log.warning("%s returned unusable product data for %s: %s",
                        self.key, catalog_number, exc)
            return None

    async def get_sds_info(self, catalog_number: str) -> SupplierSdsInfo | None:
        data = await self._get_json(self.sds_url(catalog_number))
        if data is None:
            return None

        product = await self.search_product(catalog_number)
        if product is None:
            return None

        try:
            return self.parse_sds(data, product)
        except (AttributeError, ValidationError) as exc:
            log.warning("%s returned unusable SDS data for %s: %s", self.key, catalog_number, exc)
            return None

    async def download_sds(self, catalog_number: str) -> bytes | None:
        sds_info = await self.get_sds_info(catalog_number)
        if sds_info is None or not sds_info.download_url:
            return None

        try:
            response = await self.http.get(sds_info.download_url, headers=self.download_headers())
        except HTTPError as exc:
            log.warning("%s SDS download for %s failed: %s", self.key, catalog_number, exc)
            return None

        if response.is_error:
            log.warning("%s SDS download error %s for %s",
                        self.key, response.status_code, catalog_number)
            return None

        return response.content


class VWRSupplierAPI(SupplierAPI):
    key = "vwr"

    base_urls = {
        "eu": "https://api.vwr.com/v1",
        "us": "https://api.us.vwr.com/v1",
        "asia": "https://api.asia.vwr.com/v1",
    }

    def __init__(self, http: AsyncClient, api_key: str, region: str = "eu"):
        super().__init__(http, api_key)
        self.region = region

    @property
    def base_url(self) -> str:
        return self.base_urls.get(self.region, self.base_urls["eu"])

    def product_url(self, catalog_number: str) -> str:
        return f"{self.base_url}/products/search?q={quote(catalog_number, safe='')}"

    def sds_url(self, catalog_number: str) -> str:
        return f"{self.base_url}/products/{quote(catalog_number, safe='')}/sds"

    def parse_product(self, data: dict) -> SupplierProduct | None:
        products = data.get("products") or []
        if not products:
            return None
        product = products[0]
        return SupplierProduct(
            catalog_number=product["catalogNumber"],
            product_name=product.get("productName"),
            cas_number=product.get("casNumber"),
            manufacturer=product.get("manufacturer"),
        )

    def parse_sds(self, data: dict, product: SupplierProduct) -> SupplierSdsInfo:
        return SupplierSdsInfo(
            product=product,
            sds_available=bool(data.get("available")),
            sds_url=data.get("url"),
            sds_version=data.get("version"),
            sds_last_updated=data.get("lastUpdated"),
            download_url=data.get("downloadUrl"),
        )


class SigmaAldrichSupplierAPI(SupplierAPI):
    key = "sigma-aldrich"
    base_url = "https://api.sigmaaldrich.com/v1"

    def headers(self) -> dict[str, str]:
        return {"X-API-Key": self.api_key, "Accept": "application/json"}

    def download_headers(self) -> dict[str, str]:
        # PDF links are public
        return {}

    def product_url(self, catalog_number: str) -> str:
        return f"{self.base_url}/products/{quote(catalog_number, safe='')}"

    def sds_url(self, catalog_number: str) -> str:
        return f"{self.product_url(catalog_number)}/sds"

    def parse_product(self, data: dict) -> SupplierProduct | None:
        return SupplierProduct(
            catalog_number=data["productNumber"],
            product_name=data.get("productName"),
            cas_number=data.get("casNumber"),
            manufacturer="Sigma-Aldrich",
        )

    def parse_sds(self, data: dict, product: SupplierProduct) -> SupplierSdsInfo:
        return SupplierSdsInfo(
            product=product,
            sds_available=bool(data.get("available")),
            sds_url=data.get("pdfUrl"),
            sds_version=data.get("version"),
            sds_last_updated=data.get("revisionDate"),
            download_url=data.get("pdfUrl"),
        )


class FisherScientificSupplierAPI(SupplierAPI):
    key = "fisher"
    base_url = "https://api.fishersci.com/v1"

    def product_url(self, catalog_number: str) -> str:
        return f"{self.base_url}/products?catalogNumber={quote(catalog_number, safe='')}"

    def sds_url(self, catalog_number: str) -> str:
        return f"{self.base_url}/products/{quote(catalog_number, safe='')}/sds"

    def parse_product(self, data: dict) -> SupplierProduct | None:
        products = data.get("products") or []
        if not products:
            return None
        product = products[0]
        return SupplierProduct(
            catalog_number=product["catalogNumber"],
            product_name=product.get("description"),
            cas_number=product.get("casNumber"),
            manufacturer=product.get("manufacturer"),
        )

    def parse_sds(self, data: dict, product: SupplierProduct) -> SupplierSdsInfo:
        # Fisher only answers for products that have an SDS
        return SupplierSdsInfo(
            product=product,
            sds_available=True,
            sds_url=data.get("sdsUrl"),
            sds_version=data.get("revision"),
            sds_last_updated=data.get("issueDate"),
            download_url=data.get("pdfLink"),
        )


class SupplierSdsManager:
    """Routes SDS lookups to the supplier API configured for a supplier name."""

    def __init__(
        self,
        http: AsyncClient,
        vwr_api_key: str | None = None,
        sigma_aldrich_api_key: str | None = None,
        fisher_scientific_api_key: str | None = None,
        vwr_region: str = "eu",
    ):
        self.suppliers: dict[str, SupplierAPI] = {}
        if vwr_api_key:
            self.suppliers["vwr"] = VWRSupplierAPI(http, vwr_api_key, vwr_region)
        if sigma_aldrich_api_key:
            self.suppliers["sigma-aldrich"] = SigmaAldrichSupplierAPI(http, sigma_aldrich_api_key)
        if fisher_scientific_api_key:
            self.suppliers["fisher"] = FisherScientificSupplierAPI(http, fisher_scientific_api_key)

    @staticmethod
    def normalize_supplier_name(supplier: str) -> str:
        normalized = re.sub(r"\s+", "-", supplier.strip().lower())

        if "vwr" in normalized or "avantor" in normalized:
            return "vwr"
        if "sigma" in normalized or "aldrich" in normalized or "merck" in normalized:
            return "sigma-aldrich"
        if "fisher" in normalized or "thermo" in normalized:
            return "fisher"
        return normalized

    def api_for(self, supplier: str) -> SupplierAPI | None:
        return self.suppliers.get(self.normalize_supplier_name(supplier))

    async def check_for_updates(
        self,
        supplier: str,
        catalog_number: str,
        current_sds_date: datetime | None = None,
    ) -> UpdateCheck:
        """Asks the supplier whether an SDS newer than ``current_sds_date`` exists.

        Without a stored date, or without a revision date from the supplier,
        any available SDS counts as an update.
        """
        api = self.api_for(supplier)
        if api is None:
            log.debug("No API configured for supplier %r", supplier)
            return UpdateCheck(has_update=False)

        sds_info = await api.get_sds_info(catalog_number)
        if sds_info is None or not sds_info.sds_available:
            return UpdateCheck(has_update=False)

        current_sds_date = as_naive_utc(current_sds_date)
        if current_sds_date and sds_info.sds_last_updated:
            return UpdateCheck(
                has_update=sds_info.sds_last_updated > current_sds_date,
                sds_info=sds_info,
            )

        return UpdateCheck(has_update=True, sds_info=sds_info)

    async def download_updated_sds(self, supplier: str, catalog_number: str) -> bytes | None:
        api = self.api_for(supplier)
        if api is None:
            return None
        return await api.download_sds(catalog_number)
