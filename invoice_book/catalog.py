"""Static price list the line-item form is filled from."""
from __future__ import annotations

from typing import Dict, List, Mapping

from .errors import ValidationError

PriceList = Mapping[str, Mapping[str, Mapping[str, int]]]

SHIRT_SIZES = ("S", "M", "L", "XL", "2XL", "3XL")


def _sized(*prices: int) -> Dict[str, int]:
    return dict(zip(SHIRT_SIZES, prices))


PRICE_LIST: PriceList = {
    "Lengan Pendek Combed 24S": {
        "Putih": _sized(42000, 42500, 46000, 49000, 50500, 52500),
        "Hitam": _sized(44500, 45000, 49000, 52000, 54000, 56500),
        "Warna": _sized(45000, 46000, 50600, 53000, 55000, 57500),
    },
    "Lengan Pendek Combed 30S": {
        "Putih": _sized(39500, 40000, 42500, 43500, 46000, 49500),
        "Hitam": _sized(41500, 42000, 45000, 46500, 49500, 52500),
        "Warna": _sized(42500, 43000, 46000, 47000, 50000, 53500),
    },
    "Lengan Panjang Combed 24S": {
        "Putih": _sized(47500, 49000, 51000, 54000, 57500, 61000),
        "Hitam": _sized(50500, 52500, 54500, 58000, 62000, 66000),
        "Warna": _sized(51500, 53500, 55500, 59000, 63000, 67000),
    },
    "Lengan Panjang Combed 30S": {
        "Putih": _sized(44500, 45500, 47500, 49500, 52000, 58000),
        "Hitam": _sized(46500, 48600, 51000, 53000, 55500, 62000),
        "Warna": _sized(48000, 49500, 52000, 54000, 56500, 63000),
    },
    "Polo": {
        "Semua Warna": _sized(87000, 87000, 87000, 87000, 93500, 100000),
    },
    "Desain": {
        "Layanan": {"Per Desain": 10000},
    },
    "Sablon/Bordir": {
        "Layanan": {"Per Item": 15000},
    },
}


class Catalog:
    """Read-only product -> color -> size -> unit price lookup."""

    def __init__(self, prices: PriceList = PRICE_LIST) -> None:
        self._prices = prices

    def products(self) -> List[str]:
        return list(self._prices)

    def colors(self, product: str) -> List[str]:
        return list(self._lookup(product))

    def sizes(self, product: str, color: str) -> List[str]:
        return list(self._lookup(product, color))

    def price(self, product: str, color: str, size: str) -> int:
        return self._lookup(product, color, size)

    def as_dict(self) -> Dict[str, Dict[str, Dict[str, int]]]:
        return {product: {color: dict(sizes) for color, sizes in colors.items()} for product, colors in self._prices.items()}

    def _lookup(self, *path: str):
        node = self._prices
        for depth, key in enumerate(path):
            try:
                node = node[key]
            except KeyError:
                field = ("product", "color", "size")[depth]
                raise ValidationError([f"unknown_{field}: {key}"], f"Unknown {field} '{key}' in catalog") from None
        return node


DEFAULT_CATALOG = Catalog()
