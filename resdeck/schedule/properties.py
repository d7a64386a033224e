"""Schedule controlled property objects held by each report step.

All classes here are checksum/serialization entities; their field order is
the persisted layout.  Times are stored in seconds and pressures in Pascal.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..deck.record import DeckItem, DeckKeyword
from ..serialization import serializable

DAY = 86400.0
BARSA = 1.0e5


@serializable
@dataclass
class Tuning:
    """Time stepping and convergence controls (TUNING).

    ``TSINIT`` is the only optional member: it applies to the report step in
    which it was given and is cleared by every TUNING keyword that does not
    set it.  ``TMAXWC``, ``TRGSFT`` and ``XXXDPR`` carry a flag telling
    whether the deck ever supplied them.
    """

    # record 1
    TSINIT: Optional[float] = None
    TSMAXZ: float = 365.0 * DAY
    TSMINZ: float = 0.1 * DAY
    TSMCHP: float = 0.15 * DAY
    TSFMAX: float = 3.0
    TSFMIN: float = 0.3
    TSFCNV: float = 0.1
    TFDIFF: float = 1.25
    THRUPT: float = 1.0e20
    TMAXWC: float = 0.0
    TMAXWC_has_value: bool = False
    # record 2
    TRGTTE: float = 0.1
    TRGCNV: float = 0.001
    TRGMBE: float = 1.0e-7
    TRGLCV: float = 0.0001
    XXXTTE: float = 10.0
    XXXCNV: float = 0.01
    XXXMBE: float = 1.0e-6
    XXXLCV: float = 0.001
    XXXWFL: float = 0.001
    TRGFIP: float = 0.025
    TRGSFT: float = 0.0
    TRGSFT_has_value: bool = False
    THIONX: float = 0.01
    TRWGHT: int = 1
    # record 3
    NEWTMX: int = 12
    NEWTMN: int = 1
    LITMAX: int = 25
    LITMIN: int = 1
    MXWSIT: int = 8
    MXWPIT: int = 8
    DDPLIM: float = 1.0e6 * BARSA
    DDSLIM: float = 1.0e6
    TRGDPR: float = 1.0e6 * BARSA
    XXXDPR: float = 0.0
    XXXDPR_has_value: bool = False


TUNING_RECORD_ITEMS: Tuple[Tuple[str, ...], ...] = (
    ("TSINIT", "TSMAXZ", "TSMINZ", "TSMCHP", "TSFMAX", "TSFMIN", "TSFCNV", "TFDIFF", "THRUPT", "TMAXWC"),
    (
        "TRGTTE", "TRGCNV", "TRGMBE", "TRGLCV", "XXXTTE", "XXXCNV", "XXXMBE", "XXXLCV",
        "XXXWFL", "TRGFIP", "TRGSFT", "THIONX", "TRWGHT",
    ),
    ("NEWTMX", "NEWTMN", "LITMAX", "LITMIN", "MXWSIT", "MXWPIT", "DDPLIM", "DDSLIM", "TRGDPR", "XXXDPR"),
)


@serializable
@dataclass
class NextStep:
    value: float
    every_report: bool = False


@serializable
@dataclass
class GasLiftOpt:
    """Global gas lift optimisation settings (LIFTOPT)."""

    gaslift_increment: float = 0.0
    min_eco_gradient: float = 0.0
    min_wait: float = 0.0
    all_newton: bool = True

    def active(self) -> bool:
        return self.gaslift_increment > 0.0


class VaporizationType(enum.IntEnum):
    UNDEF = 0
    DRDT = 1
    DRSDTCON = 2
    VAPPARS = 3


@serializable
@dataclass
class OilVaporizationProperties:
    """Per PVT region dissolution/vaporization limits (DRSDT, DRVDT, VAPPARS)."""

    num_regions: int = 1
    type: VaporizationType = VaporizationType.UNDEF
    max_drsdt: List[float] = field(default_factory=list)
    drsdt_all_cells: List[bool] = field(default_factory=list)
    max_drvdt: List[float] = field(default_factory=list)
    vap1: List[float] = field(default_factory=list)
    vap2: List[float] = field(default_factory=list)

    @classmethod
    def for_regions(cls, num_regions: int) -> "OilVaporizationProperties":
        n = int(num_regions)
        return cls(
            num_regions=n,
            max_drsdt=[-1.0] * n,
            drsdt_all_cells=[False] * n,
            max_drvdt=[-1.0] * n,
            vap1=[-1.0] * n,
            vap2=[-1.0] * n,
        )

    def _check_size(self, values: List[float]) -> None:
        if len(values) != self.num_regions:
            raise ValueError(
                f"Expected {self.num_regions} PVT region values, got {len(values)}"
            )

    def update_drsdt(self, maximums: List[float], options: List[str], *, con: bool = False) -> None:
        self._check_size(maximums)
        self._check_size(options)
        all_cells = []
        for option in options:
            key = str(option).strip().upper()
            if key == "ALL":
                all_cells.append(True)
            elif key == "FREE":
                all_cells.append(False)
            else:
                raise ValueError(f"Only ALL or FREE is allowed as option string, got {option!r}")
        self.type = VaporizationType.DRSDTCON if con else VaporizationType.DRDT
        self.max_drsdt = [float(v) for v in maximums]
        self.drsdt_all_cells = all_cells

    def update_drvdt(self, maximums: List[float]) -> None:
        self._check_size(maximums)
        self.type = VaporizationType.DRDT
        self.max_drvdt = [float(v) for v in maximums]

    def update_vappars(self, vap1: float, vap2: float) -> None:
        self.type = VaporizationType.VAPPARS
        self.vap1 = [float(vap1)] * self.num_regions
        self.vap2 = [float(vap2)] * self.num_regions

    def drsdt_active(self, region: int = 0) -> bool:
        return self.type in (VaporizationType.DRDT, VaporizationType.DRSDTCON) and self.max_drsdt[region] >= 0.0

    def drvdt_active(self, region: int = 0) -> bool:
        return self.type is VaporizationType.DRDT and self.max_drvdt[region] >= 0.0


@serializable
@dataclass
class MessageLimits:
    """Print and stop limits per message class (MESSAGES)."""

    MESSAGE_PRINT_LIMIT: int = 1000000
    COMMENT_PRINT_LIMIT: int = 1000000
    WARNING_PRINT_LIMIT: int = 10000
    PROBLEM_PRINT_LIMIT: int = 100
    ERROR_PRINT_LIMIT: int = 100
    BUG_PRINT_LIMIT: int = 100
    MESSAGE_STOP_LIMIT: int = 1000000
    COMMENT_STOP_LIMIT: int = 1000000
    WARNING_STOP_LIMIT: int = 10000
    PROBLEM_STOP_LIMIT: int = 100
    ERROR_STOP_LIMIT: int = 10
    BUG_STOP_LIMIT: int = 1
    GROUP_PRINT_LIMIT: int = 10

    def update(self, keyword: DeckKeyword) -> None:
        """Overwrite the limits explicitly given in ``keyword``."""

        for record in keyword:
            for item in record:
                if not hasattr(self, item.name):
                    raise ValueError(f"MESSAGES has no item {item.name}")
                if not item.defaulted(0) and item.has_value(0):
                    setattr(self, item.name, int(item.get(0)))


def parse_mnemonics(items: List[str]) -> Dict[str, int]:
    """Parse report mnemonics such as ``['BASIC=2', 'FREQ=3', 'PRES']``."""

    result: Dict[str, int] = {}
    for token in items:
        for part in str(token).split():
            name, sep, value = part.partition("=")
            name = name.strip().upper()
            if not name:
                continue
            if sep:
                try:
                    result[name] = int(value)
                except ValueError:
                    raise ValueError(f"Mnemonic {name} expects an integer, got {value!r}") from None
            else:
                result[name] = 1
    return result


def _mnemonic_tokens(keyword: DeckKeyword) -> List[str]:
    tokens: List[str] = []
    for record in keyword:
        for item in record:
            tokens.extend(str(v) for v in item.get_all())
    return tokens


@serializable
@dataclass
class RstConfig:
    """Restart output request (RPTRST; RPTSCHED may add RESTART=n)."""

    basic: Optional[int] = None
    freq: Optional[int] = None
    keywords: Dict[str, int] = field(default_factory=dict)

    def update(self, keyword: DeckKeyword) -> None:
        mnemonics = parse_mnemonics(_mnemonic_tokens(keyword))
        if keyword.name == "RPTSCHED":
            if "RESTART" in mnemonics:
                self.basic = mnemonics["RESTART"]
            if "NOTHING" in mnemonics:
                self.basic = None
            return
        for name, value in mnemonics.items():
            if name == "BASIC":
                self.basic = value
            elif name == "FREQ":
                self.freq = value
            else:
                self.keywords[name] = value

    def write_restart(self, report_step: int) -> bool:
        if self.basic is None or self.basic == 0:
            return False
        if self.basic in (1, 2):
            return True
        freq = self.freq if self.freq else 1
        return report_step % freq == 0


@serializable
@dataclass
class RptConfig:
    """Report mnemonics requested with RPTSCHED; NOTHING clears them."""

    mnemonics: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_keyword(cls, keyword: DeckKeyword) -> "RptConfig":
        mnemonics = parse_mnemonics(_mnemonic_tokens(keyword))
        if "NOTHING" in mnemonics:
            mnemonics = {}
        return cls(mnemonics=mnemonics)


class VFPKind(enum.IntEnum):
    PROD = 1
    INJ = 2


@serializable
@dataclass
class VFPTable:
    """Vertical flow performance table header with its flattened body."""

    table_id: int
    kind: VFPKind
    datum_depth: float
    rate_type: str = ""
    body: Tuple[float, ...] = ()

    @classmethod
    def from_keyword(cls, keyword: DeckKeyword, kind: VFPKind) -> "VFPTable":
        if len(keyword) == 0:
            raise ValueError(f"{keyword.name} needs a header record")
        header = keyword.record(0)
        rate = header.item("RATE_TYPE")
        body: List[float] = []
        for record in keyword.records[1:]:
            for item in record:
                body.extend(float(v) for v in item.get_all())
        return cls(
            table_id=int(header.item("TABLE").get()),
            kind=kind,
            datum_depth=header.item("DATUM_DEPTH").get_si(),
            rate_type=str(rate.get()) if rate.has_value() else "",
            body=tuple(body),
        )


@serializable
@dataclass
class AquiferFlux:
    """Constant flux aquifer (AQUFLUX)."""

    aquifer_id: int
    flux: float = 0.0
    salinity: float = 0.0
    temperature: Optional[float] = None
    pressure: Optional[float] = None
    active: bool = True


class BCType(enum.IntEnum):
    RATE = 1
    FREE = 2
    DIRICHLET = 3
    THERMAL = 4
    CLOSED = 5
    NONE = 6


class BCComponent(enum.IntEnum):
    OIL = 1
    GAS = 2
    WATER = 3
    SOLVENT = 4
    POLYMER = 5
    NONE = 6


def _enum_from_item(enum_cls, item: DeckItem, fallback):
    if not item.has_value():
        return fallback
    key = str(item.get()).strip().upper()
    try:
        return enum_cls[key]
    except KeyError:
        raise ValueError(f"{item.name}: unknown value {item.get()!r}") from None


@serializable
@dataclass
class BCFace:
    """Boundary condition properties for one BCCON index (BCPROP)."""

    index: int
    bctype: BCType = BCType.NONE
    component: BCComponent = BCComponent.NONE
    rate: float = 0.0
    pressure: Optional[float] = None
    temperature: Optional[float] = None

    @classmethod
    def from_items(cls, record) -> "BCFace":
        pressure = record.item("PRESSURE")
        temperature = record.item("TEMPERATURE")
        rate = record.item("RATE")
        return cls(
            index=int(record.item("INDEX").get()),
            bctype=_enum_from_item(BCType, record.item("TYPE"), BCType.NONE),
            component=_enum_from_item(BCComponent, record.item("COMPONENT"), BCComponent.NONE),
            rate=rate.get_si() if rate.has_value() else 0.0,
            pressure=pressure.get_si() if pressure.has_value() else None,
            temperature=float(temperature.get()) if temperature.has_value() else None,
        )


@serializable
@dataclass
class Group:
    name: str
    parent: str = ""
    children: List[str] = field(default_factory=list)


@serializable
@dataclass
class NetworkNode:
    """Extended network node (NODEPROP)."""

    name: str
    terminal_pressure: Optional[float] = None
    as_choke: bool = False
    add_gas_lift_gas: bool = False
    choke_group: Optional[str] = None
