"""Handlers for single purpose SCHEDULE keywords.

Each handler takes the :class:`~resdeck.schedule.context.HandlerContext` of
one keyword and mutates the current report step.  ``HANDLERS`` maps keyword
names to handlers and is read-only once the module is imported.
"""
from __future__ import annotations

import dataclasses
import logging
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Sequence, Tuple

from ..deck.record import DeckItem, DeckRecord
from ..errors import InputError
from .context import HandlerContext
from .events import ScheduleEvents
from .properties import (
    TUNING_RECORD_ITEMS,
    AquiferFlux,
    BCFace,
    NextStep,
    RptConfig,
    VFPKind,
    VFPTable,
)
from .state import DEFAULT_NUPCOL

logger = logging.getLogger(__name__)

Handler = Callable[[HandlerContext], None]

_SI = "si"


def _nondefault_or_previous(record: DeckRecord, name: str, previous: Any, conv: Any) -> Any:
    item = record.item(name)
    if item.defaulted(0) or not item.has_value(0):
        return previous
    if conv is _SI:
        return item.get_si(0)
    return conv(item.get(0))


def _value_or(item: DeckItem, fallback: Any, conv: Any = None) -> Any:
    if not item.has_value(0):
        return fallback
    if conv is _SI:
        return item.get_si(0)
    if conv is None:
        return item.get(0)
    return conv(item.get(0))


def handle_unsupported_aquifer(ctx: HandlerContext) -> None:
    raise InputError(f"{ctx.keyword.name} is not supported as SCHEDULE keyword", ctx.location)


def handle_aquflux(ctx: HandlerContext) -> None:
    fluxes = ctx.state().mutable("aquflux")
    for record in ctx.keyword:
        aquifer = AquiferFlux(
            aquifer_id=int(record.item("AQUIFER_ID").get()),
            flux=_value_or(record.item("FLUX"), 0.0, _SI),
            salinity=_value_or(record.item("SALINITY"), 0.0, float),
            temperature=_value_or(record.item("TEMP"), None, float),
            pressure=_value_or(record.item("PRESSURE"), None, _SI),
        )
        fluxes[aquifer.aquifer_id] = aquifer
    ctx.add_event(ScheduleEvents.AQUIFER_UPDATE)


def handle_bcprop(ctx: HandlerContext) -> None:
    faces = ctx.state().mutable("bcprop")
    for record in ctx.keyword:
        face = BCFace.from_items(record)
        faces[face.index] = face
    ctx.add_event(ScheduleEvents.BOUNDARY_UPDATE)


def region_records(ctx: HandlerContext) -> List[DeckRecord]:
    """One record per PVT region.

    A single record is broadcast to every region; otherwise there must be
    exactly one record per region, taken in input order.
    """
    records = list(ctx.keyword)
    n = ctx.num_pvt_regions
    if len(records) == 1:
        return records * n
    if len(records) == n:
        return records
    raise ValueError(
        f"{ctx.keyword.name} expects 1 record or {n} records (one per PVT region), got {len(records)}"
    )


def _drsdt_values(ctx: HandlerContext) -> Tuple[List[float], List[str]]:
    maximums: List[float] = []
    options: List[str] = []
    for record in region_records(ctx):
        maximums.append(record.item("DRSDT_MAX").get_si())
        options.append(str(_value_or(record.item("OPTION"), "ALL")))
    return maximums, options


def handle_drsdt(ctx: HandlerContext) -> None:
    maximums, options = _drsdt_values(ctx)
    ctx.state().mutable("oilvap").update_drsdt(maximums, options)


def handle_drsdtcon(ctx: HandlerContext) -> None:
    maximums, options = _drsdt_values(ctx)
    ctx.state().mutable("oilvap").update_drsdt(maximums, options, con=True)


def handle_drvdt(ctx: HandlerContext) -> None:
    maximums = [record.item("DRVDT_MAX").get_si() for record in region_records(ctx)]
    ctx.state().mutable("oilvap").update_drvdt(maximums)


def handle_exit(ctx: HandlerContext) -> None:
    if not ctx.actionx_mode:
        logger.debug("EXIT outside ACTIONX at report step %d ignored", ctx.current_step)
        return
    status = int(_value_or(ctx.keyword.record(0).item("STATUS_CODE"), 0))
    logger.info(
        "Simulation exit with status: %d requested as part of ACTIONX at report_step: %d",
        status,
        ctx.current_step,
    )
    ctx.set_exit_code(status)


def handle_geo_keyword(ctx: HandlerContext) -> None:
    state = ctx.state()
    if ctx.keyword.name == "MULTFLT":
        state.mutable("faults").apply_multflt(ctx.keyword, section=f"SCHEDULE:{ctx.current_step}")
    state.mutable("geo_keywords").append(ctx.keyword)
    ctx.add_event(ScheduleEvents.GEO_MODIFIER)
    ctx.sim_update.tran_update = True


def handle_liftopt(ctx: HandlerContext) -> None:
    glo = ctx.state().glo
    record = ctx.keyword.record(0)
    updated = dataclasses.replace(
        glo,
        gaslift_increment=_value_or(record.item("INCREMENT_SIZE"), glo.gaslift_increment, _SI),
        min_eco_gradient=_value_or(record.item("MIN_ECONOMIC_GRADIENT"), glo.min_eco_gradient, _SI),
        min_wait=_value_or(
            record.item("MIN_INTERVAL_BETWEEN_GAS_LIFT_OPTIMIZATIONS"), glo.min_wait, _SI
        ),
        all_newton=_value_or(record.item("OPTIMISE_ALL_ITERATIONS"), glo.all_newton, DeckItem.to_bool),
    )
    ctx.state().update("glo", updated)


def handle_messages(ctx: HandlerContext) -> None:
    ctx.state().mutable("message_limits").update(ctx.keyword)


def handle_unsupported_modifier(ctx: HandlerContext) -> None:
    ctx.error(
        "unsupported_schedule_modifier",
        f"Grid property modifier {ctx.keyword.name} is not supported in the SCHEDULE section "
        f"(report step {ctx.current_step})",
    )


def handle_nextstep(ctx: HandlerContext) -> None:
    record = ctx.keyword.record(0)
    max_step = record.item("MAX_STEP").get_si()
    apply_to_all = DeckItem.to_bool(_value_or(record.item("APPLY_TO_ALL"), "NO"))
    ctx.state().update("next_tstep", NextStep(max_step, apply_to_all))
    ctx.add_event(ScheduleEvents.TUNING_CHANGE)


def handle_nupcol(ctx: HandlerContext) -> None:
    item = ctx.keyword.record(0).item("NUM_ITER")
    if item.defaulted(0):
        nupcol = int(_value_or(item, DEFAULT_NUPCOL))
        logger.info("Using %d as default NUPCOL value", nupcol)
    else:
        nupcol = int(item.get())
    if nupcol < 1:
        raise ValueError(f"NUPCOL must be positive, got {nupcol}")
    ctx.state().update("nupcol", nupcol)


def handle_rptonly(ctx: HandlerContext) -> None:
    ctx.state().update("rptonly", True)


def handle_rptonlyo(ctx: HandlerContext) -> None:
    ctx.state().update("rptonly", False)


def handle_rptrst(ctx: HandlerContext) -> None:
    ctx.state().mutable("rst_config").update(ctx.keyword)


def handle_rptsched(ctx: HandlerContext) -> None:
    state = ctx.state()
    state.update("rpt_config", RptConfig.from_keyword(ctx.keyword))
    state.mutable("rst_config").update(ctx.keyword)


def handle_save(ctx: HandlerContext) -> None:
    # Interpreted as a request for a normal restart file at this step.
    ctx.state().update("save", True)


def handle_sumthin(ctx: HandlerContext) -> None:
    ctx.state().update("sumthin", ctx.keyword.record(0).item(0).get_si())


# (item, conversion) per TUNING record; the last record entry is the
# optional item tracked with a ``<name>_has_value`` flag.
_TUNING_LAYOUT: Tuple[Tuple[Tuple[str, Any], ...], ...] = (
    (
        ("TSMAXZ", _SI), ("TSMINZ", _SI), ("TSMCHP", _SI), ("TSFMAX", float),
        ("TSFMIN", float), ("TSFCNV", float), ("TFDIFF", float), ("THRUPT", float),
        ("TMAXWC", _SI),
    ),
    (
        ("TRGTTE", float), ("TRGCNV", float), ("TRGMBE", float), ("TRGLCV", float),
        ("XXXTTE", float), ("XXXCNV", float), ("XXXMBE", float), ("XXXLCV", float),
        ("XXXWFL", float), ("TRGFIP", float), ("THIONX", float), ("TRWGHT", int),
        ("TRGSFT", float),
    ),
    (
        ("NEWTMX", int), ("NEWTMN", int), ("LITMAX", int), ("LITMIN", int),
        ("MXWSIT", int), ("MXWPIT", int), ("DDPLIM", _SI), ("DDSLIM", float),
        ("TRGDPR", _SI), ("XXXDPR", _SI),
    ),
)


def handle_tuning(ctx: HandlerContext) -> None:
    """TUNING: up to three records; defaulted items keep the previous value.

    TSINIT is cleared unless this occurrence sets it.  Records that are not
    present leave their fields untouched.
    """
    keyword = ctx.keyword
    if len(keyword) > len(_TUNING_LAYOUT):
        raise ValueError(f"TUNING takes at most {len(_TUNING_LAYOUT)} records, got {len(keyword)}")
    for index, record in enumerate(keyword):
        for item in record:
            if item.name not in TUNING_RECORD_ITEMS[index]:
                ctx.error("unsupported_tuning_item", f"TUNING record {index + 1} has no item {item.name}")

    tuning = dataclasses.replace(ctx.state().tuning)
    tuning.TSINIT = None
    for index, record in enumerate(keyword):
        if index == 0:
            tsinit = record.item("TSINIT")
            if not tsinit.defaulted(0) and tsinit.has_value(0):
                tuning.TSINIT = tsinit.get_si(0)
        *regular, (flagged, flagged_conv) = _TUNING_LAYOUT[index]
        for name, conv in regular:
            setattr(tuning, name, _nondefault_or_previous(record, name, getattr(tuning, name), conv))
        if record.item(flagged).has_value(0):
            setattr(tuning, f"{flagged}_has_value", True)
            setattr(
                tuning,
                flagged,
                _nondefault_or_previous(record, flagged, getattr(tuning, flagged), flagged_conv),
            )

    ctx.state().update("tuning", tuning)
    ctx.add_event(ScheduleEvents.TUNING_CHANGE)


def handle_vappars(ctx: HandlerContext) -> None:
    oilvap = ctx.state().mutable("oilvap")
    for record in ctx.keyword:
        oilvap.update_vappars(
            float(record.item("OIL_VAP_PROPENSITY").get()),
            float(record.item("OIL_DENSITY_PROPENSITY").get()),
        )


def _vfp_handler(kind: VFPKind, member: str, event: ScheduleEvents) -> Handler:
    def handle_vfp(ctx: HandlerContext) -> None:
        table = VFPTable.from_keyword(ctx.keyword, kind)
        ctx.add_event(event)
        ctx.state().mutable(member)[table.table_id] = table

    handle_vfp.__name__ = f"handle_vfp{member[3:]}"
    return handle_vfp


handle_vfpinj = _vfp_handler(VFPKind.INJ, "vfpinj", ScheduleEvents.VFPINJ_UPDATE)
handle_vfpprod = _vfp_handler(VFPKind.PROD, "vfpprod", ScheduleEvents.VFPPROD_UPDATE)


GEO_KEYWORDS: Sequence[str] = (
    "BOX", "ENDBOX", "MULTFLT", "MULTX", "MULTX-", "MULTY", "MULTY-", "MULTZ", "MULTZ-",
)
UNSUPPORTED_MODIFIERS: Sequence[str] = (
    "MULTPV", "MULTR", "MULTR-", "MULTREGT", "MULTSIG", "MULTSIGV", "MULTTHT", "MULTTHT-",
)

_TABLE: Dict[str, Handler] = {
    "AQUCT": handle_unsupported_aquifer,
    "AQUFETP": handle_unsupported_aquifer,
    "AQUFLUX": handle_aquflux,
    "BCPROP": handle_bcprop,
    "DRSDT": handle_drsdt,
    "DRSDTCON": handle_drsdtcon,
    "DRSDTR": handle_drsdt,
    "DRVDT": handle_drvdt,
    "DRVDTR": handle_drvdt,
    "EXIT": handle_exit,
    "LIFTOPT": handle_liftopt,
    "MESSAGES": handle_messages,
    "NEXT": handle_nextstep,
    "NEXTSTEP": handle_nextstep,
    "NUPCOL": handle_nupcol,
    "RPTONLY": handle_rptonly,
    "RPTONLYO": handle_rptonlyo,
    "RPTRST": handle_rptrst,
    "RPTSCHED": handle_rptsched,
    "SAVE": handle_save,
    "SUMTHIN": handle_sumthin,
    "TUNING": handle_tuning,
    "VAPPARS": handle_vappars,
    "VFPINJ": handle_vfpinj,
    "VFPPROD": handle_vfpprod,
}
_TABLE.update({name: handle_geo_keyword for name in GEO_KEYWORDS})
_TABLE.update({name: handle_unsupported_modifier for name in UNSUPPORTED_MODIFIERS})

HANDLERS: Mapping[str, Handler] = MappingProxyType(_TABLE)
