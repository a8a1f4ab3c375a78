"""Wire models for the Mercado Público tender API.

The API speaks PascalCase JSON. Summary (list-by-date) and detail
(by-code) responses share one record shape; summaries simply leave most
fields empty.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _ApiModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def _whole_number(value: Any) -> Any:
    """Truncate fractional counts (``2.5`` becomes ``2``); the API is not strict."""
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str) and "." in value:
        try:
            return int(float(value))
        except ValueError:
            return value
    return value


def _list_or_empty(value: Any) -> Any:
    return [] if value is None else value


class BuyerInfo(_ApiModel):
    rut: str | None = Field(default=None, alias="RutUnidad")
    name: str | None = Field(default=None, alias="NombreUnidad")
    region: str | None = Field(default=None, alias="RegionUnidad")


class TenderDates(_ApiModel):
    created: str | None = Field(default=None, alias="FechaCreacion")
    close: str | None = Field(default=None, alias="FechaCierre")
    publication: str | None = Field(default=None, alias="FechaPublicacion")
    award: str | None = Field(default=None, alias="FechaAdjudicacion")


class RemoteItem(_ApiModel):
    product_code: str | None = Field(default=None, alias="CodigoProducto")
    product_name: str | None = Field(default=None, alias="NombreProducto")
    description: str | None = Field(default=None, alias="Descripcion")
    quantity: int | None = Field(default=None, alias="Cantidad")
    unit_of_measure: str | None = Field(default=None, alias="UnidadMedida")

    @field_validator("quantity", mode="before")
    @classmethod
    def truncate_quantity(cls, value: Any) -> Any:
        return _whole_number(value)


class ItemsContainer(_ApiModel):
    """The API wraps the item list in an object with a ``Listado`` field."""

    count: int | None = Field(default=None, alias="Cantidad")
    listing: list[RemoteItem] = Field(default_factory=list, alias="Listado")

    @field_validator("count", mode="before")
    @classmethod
    def truncate_count(cls, value: Any) -> Any:
        return _whole_number(value)

    @field_validator("listing", mode="before")
    @classmethod
    def null_listing_as_empty(cls, value: Any) -> Any:
        return _list_or_empty(value)


class TenderRecord(_ApiModel):
    """One tender as returned by either remote read operation."""

    external_code: str = Field(alias="CodigoExterno")
    name: str | None = Field(default=None, alias="Nombre")
    description: str | None = Field(default=None, alias="Descripcion")
    status_code: int | None = Field(default=None, alias="CodigoEstado")
    close_date: str | None = Field(default=None, alias="FechaCierre")
    publication_date: str | None = Field(default=None, alias="FechaPublicacion")
    dates: TenderDates | None = Field(default=None, alias="Fechas")
    buyer: BuyerInfo | None = Field(default=None, alias="Comprador")
    items: ItemsContainer | None = Field(default=None, alias="Items")

    @property
    def item_listing(self) -> list[RemoteItem]:
        if self.items is None:
            return []
        return list(self.items.listing)


class TenderListResponse(_ApiModel):
    """Envelope of ``GET /licitaciones.json``.

    ``listing`` keeps the raw entries; each one is validated on its own by
    the client so a single malformed tender does not void the batch.
    """

    count: int | None = Field(default=None, alias="Cantidad")
    created_at: str | None = Field(default=None, alias="FechaCreacion")
    version: str | None = Field(default=None, alias="Version")
    listing: list[Any] = Field(default_factory=list, alias="Listado")

    @field_validator("listing", mode="before")
    @classmethod
    def null_listing_as_empty(cls, value: Any) -> Any:
        return _list_or_empty(value)


__all__ = [
    "BuyerInfo",
    "ItemsContainer",
    "RemoteItem",
    "TenderDates",
    "TenderListResponse",
    "TenderRecord",
]
