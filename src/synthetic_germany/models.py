"""
Core data models for the Synthetic Germany analysis.

This module defines the fundamental data structures used throughout the
pipeline: the macroeconomic indicators, the country registry with its code
and spelling aliases, time frames and the country identifier map required
by the synthetic control solver.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Tuple

import pandas as pd
from pydantic import BaseModel, Field, field_validator, ValidationInfo


class Indicator(str, Enum):
    """Macroeconomic indicators, one workbook sheet each."""
    INFLATION = "inflation"
    IMPORTS = "imports"
    PUBLIC_DEBT = "public_debt"
    DEFICIT = "deficit"
    EXPENDITURE = "expenditure"

    @property
    def sheet_name(self) -> str:
        """Default workbook sheet holding this indicator."""
        return DEFAULT_SHEET_NAMES[self]

    @classmethod
    def parse(cls, value: str) -> Indicator:
        """Resolve an indicator from its value or sheet name."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace(" ", "_")
        for indicator in cls:
            if indicator.value == normalized:
                return indicator
        raise ValueError(f"Unknown indicator: {value}")


DEFAULT_SHEET_NAMES: Dict[Indicator, str] = {
    Indicator.INFLATION: "Inflation",
    Indicator.IMPORTS: "Imports",
    Indicator.PUBLIC_DEBT: "Public Debt",
    Indicator.DEFICIT: "Deficit",
    Indicator.EXPENDITURE: "Expenditure",
}

ALL_INDICATORS: Tuple[Indicator, ...] = tuple(Indicator)


@dataclass(frozen=True)
class Country:
    """
    Represents a country with its code and spelling variants.

    Attributes:
        iso3: 3-letter ISO country code
        name: Canonical country name used in the panel
        aliases: Other labels found in source sheets
    """
    iso3: str
    name: str
    aliases: Tuple[str, ...] = ()

    def __post_init__(self):
        """Validate country code."""
        if len(self.iso3) != 3:
            raise ValueError(f"ISO3 code must be 3 characters: {self.iso3}")

    @property
    def labels(self) -> Tuple[str, ...]:
        """All labels that identify this country."""
        return (self.iso3, self.name) + self.aliases


EUROPEAN_COUNTRIES = {
    Country("AUT", "Austria"),
    Country("BEL", "Belgium"),
    Country("CYP", "Cyprus"),
    Country("CZE", "Czech Republic", ("Czechia",)),
    Country("DNK", "Denmark"),
    Country("EST", "Estonia"),
    Country("FIN", "Finland"),
    Country("FRA", "France"),
    Country("DEU", "Germany", ("GER",)),
    Country("GRC", "Greece", ("Hellas",)),
    Country("HUN", "Hungary"),
    Country("IRL", "Ireland"),
    Country("ITA", "Italy"),
    Country("LVA", "Latvia"),
    Country("LTU", "Lithuania"),
    Country("LUX", "Luxemburg", ("Luxembourg",)),
    Country("MLT", "Malta"),
    Country("NLD", "Netherlands", ("The Netherlands", "Holland")),
    Country("NOR", "Norway"),
    Country("POL", "Poland"),
    Country("PRT", "Portugal"),
    Country("SVK", "Slovakia", ("Slovak Republic",)),
    Country("SVN", "Slovenia"),
    Country("ESP", "Spain"),
    Country("SWE", "Sweden"),
    Country("CHE", "Switzerland"),
    Country("GBR", "United Kingdom", ("UK",)),
}

# Countries left out of the donor pool and the treated unit
DEFAULT_EXCLUDED_COUNTRIES: Tuple[str, ...] = (
    "Estonia", "Slovenia", "Latvia", "Lithuania", "Luxemburg", "Belgium",
)

_LABEL_INDEX: Dict[str, Country] = {
    label.casefold(): country
    for country in EUROPEAN_COUNTRIES
    for label in country.labels
}


def canonical_country_name(label: str) -> str:
    """
    Map a country code or alias to its canonical name.

    Unknown labels are returned stripped but otherwise unchanged.
    """
    text = str(label).strip()
    country = _LABEL_INDEX.get(text.casefold())
    return country.name if country else text


def get_country(label: str) -> Country:
    """Get Country object by code, name or alias."""
    country = _LABEL_INDEX.get(str(label).strip().casefold())
    if country is None:
        raise ValueError(f"Country not found: {label}")
    return country


class TimeFrame(BaseModel):
    """
    Inclusive range of years.

    Attributes:
        start_year: Starting year
        end_year: Ending year (inclusive)
    """
    start_year: int = Field(..., ge=1900, le=2100)
    end_year: int = Field(..., ge=1900, le=2100)

    model_config = {"frozen": True}

    @field_validator('end_year')
    @classmethod
    def end_after_start(cls, v: int, info: ValidationInfo) -> int:
        """Ensure end year is after start year."""
        start = info.data.get('start_year')
        if start is not None and v < start:
            raise ValueError('end_year must be >= start_year')
        return v

    @property
    def years(self) -> range:
        """Get range of years."""
        return range(self.start_year, self.end_year + 1)

    @property
    def num_years(self) -> int:
        """Get number of years."""
        return self.end_year - self.start_year + 1

    def contains(self, year: int) -> bool:
        """Check whether a year falls inside the frame."""
        return self.start_year <= year <= self.end_year


@dataclass(frozen=True)
class CountryIdMap:
    """
    Bidirectional lookup between country names and dense integer ids.

    The synthetic control solver identifies units by number; ids are
    assigned from 1 in alphabetical order of the country names.
    """
    _name_to_id: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self):
        ids = list(self._name_to_id.values())
        if len(set(ids)) != len(ids):
            raise ValueError("Country ids must be unique")

    @classmethod
    def from_countries(cls, countries: Iterable[str]) -> CountryIdMap:
        """Build the map from any iterable of country names."""
        names = sorted({str(country) for country in countries})
        return cls({name: index for index, name in enumerate(names, start=1)})

    def id_of(self, name: str) -> int:
        """Get the id for a country name."""
        try:
            return self._name_to_id[name]
        except KeyError:
            raise KeyError(f"Unknown country: {name}") from None

    def name_of(self, country_id: int) -> str:
        """Get the country name for an id."""
        for name, value in self._name_to_id.items():
            if value == country_id:
                return name
        raise KeyError(f"Unknown country id: {country_id}")

    @property
    def names(self) -> List[str]:
        """Country names in id order."""
        return sorted(self._name_to_id, key=self._name_to_id.__getitem__)

    @property
    def ids(self) -> List[int]:
        """All ids in ascending order."""
        return sorted(self._name_to_id.values())

    def attach(self, panel: pd.DataFrame, country_column: str = "country") -> pd.DataFrame:
        """Return a copy of the panel with a ``country_id`` column."""
        result = panel.copy()
        result["country_id"] = result[country_column].map(self.id_of).astype(int)
        return result

    def to_frame(self) -> pd.DataFrame:
        """Tabular view of the mapping."""
        return pd.DataFrame({"country_id": self.ids, "country": self.names})

    def __len__(self) -> int:
        return len(self._name_to_id)

    def __contains__(self, name: object) -> bool:
        return name in self._name_to_id
