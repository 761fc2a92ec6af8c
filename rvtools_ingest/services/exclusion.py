from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Protocol

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..config.loader import ConfigError
from ..models.dataset import NormalizedDataset
from ..models.inventory import PowerState, VirtualMachine
from .identity import get_vm_identifier

"""Auto-exclusion classifier.

Rules are data (``data/exclusion_rules.yml``, validated against
``exclusion_rules.schema.json``). One pass in rule order; every VM collects all
categories it matches, so the per-category breakdown may count a VM more than
once (``multi_match_count`` says how many VMs did).

User overrides win over rules: an explicit include beats an explicit exclude,
which beats the automatic decision.
"""

__all__ = [
    "EXCLUSION_CATEGORIES",
    "OverrideLookup",
    "RULES_PATH",
    "RULES_SCHEMA_PATH",
    "ExclusionRule",
    "ExclusionDecision",
    "ExclusionReport",
    "load_exclusion_rules",
    "auto_exclusion_reasons",
    "classify_exclusions",
]

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).parent.parent / "data"
RULES_PATH = _DATA_DIR / "exclusion_rules.yml"
RULES_SCHEMA_PATH = _DATA_DIR / "exclusion_rules.schema.json"

EXCLUSION_CATEGORIES = (
    "templates",
    "poweredOff",
    "vmwareInfrastructure",
    "windowsInfrastructure",
)


class OverrideLookup(Protocol):
    def is_excluded(self, vm_id: str) -> bool: ...

    def is_force_included(self, vm_id: str) -> bool: ...


@dataclass(frozen=True)
class ExclusionRule:
    id: str
    kind: str
    category: str
    label: str
    states: tuple[PowerState, ...] = ()
    field: str = "name"
    match: str = "contains"
    values: tuple[str, ...] = ()
    patterns: tuple[re.Pattern[str], ...] = ()
    guest_os_all: tuple[str, ...] = ()

    def matches(self, vm: VirtualMachine) -> bool:
        if self.kind == "template":
            return vm.template
        if self.kind == "power_state":
            return vm.power_state in self.states
        if self.guest_os_all:
            guest_os = vm.effective_guest_os.lower()
            if not all(v in guest_os for v in self.guest_os_all):
                return False
        subject = (vm.vm_name if self.field == "name" else vm.effective_guest_os).lower()
        if not subject:
            return False
        if self.match == "regex":
            return any(p.search(subject) for p in self.patterns)
        if self.match == "prefix":
            return any(subject.startswith(v) for v in self.values)
        return any(v in subject for v in self.values)


def _rule(raw: dict[str, Any]) -> ExclusionRule:
    values = tuple(str(v).lower() for v in raw.get("values", ()))
    match = raw.get("match", "contains")
    try:
        patterns = tuple(re.compile(v, re.IGNORECASE) for v in values) if match == "regex" else ()
    except re.error as e:
        raise ConfigError(f"exclusion rule {raw['id']!r}: invalid regex: {e}") from e
    return ExclusionRule(
        id=raw["id"],
        kind=raw["kind"],
        category=raw["category"],
        label=raw.get("label", raw["id"]),
        states=tuple(PowerState(s) for s in raw.get("states", ())),
        field=raw.get("field", "name"),
        match=match,
        values=values,
        patterns=patterns,
        guest_os_all=tuple(str(v).lower() for v in raw.get("guest_os_all", ())),
    )


@lru_cache(maxsize=8)
def load_exclusion_rules(path: Path = RULES_PATH) -> tuple[ExclusionRule, ...]:
    """Load and validate a rules file.

    Raises:
        ConfigError: missing file, invalid YAML or schema violation
    """
    if not path.exists():
        raise ConfigError(f"exclusion rules not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid exclusion rules yaml: {e}") from e
    schema = json.loads(RULES_SCHEMA_PATH.read_text(encoding="utf-8"))
    try:
        jsonschema.validate(data, schema)
    except ValidationError as e:
        raise ConfigError(f"exclusion rules validation failed: {e.message}") from e
    rules = tuple(_rule(r) for r in data["rules"])
    logger.debug("loaded %d exclusion rules from %s", len(rules), path)
    return rules


def auto_exclusion_reasons(
    vm: VirtualMachine, rules: Iterable[ExclusionRule] | None = None
) -> tuple[ExclusionRule, ...]:
    rules = load_exclusion_rules() if rules is None else rules
    return tuple(rule for rule in rules if rule.matches(vm))


@dataclass(frozen=True)
class ExclusionDecision:
    vm_id: str
    vm_name: str
    auto_excluded: bool
    reasons: tuple[str, ...]
    categories: tuple[str, ...]
    user_excluded: bool = False
    user_included: bool = False

    @property
    def is_effectively_excluded(self) -> bool:
        if self.user_included:
            return False
        if self.user_excluded:
            return True
        return self.auto_excluded


@dataclass(frozen=True)
class ExclusionReport:
    decisions: tuple[ExclusionDecision, ...]
    breakdown: dict[str, int]
    multi_match_count: int

    @property
    def auto_excluded_count(self) -> int:
        return sum(1 for d in self.decisions if d.auto_excluded)

    @property
    def excluded_count(self) -> int:
        return sum(1 for d in self.decisions if d.is_effectively_excluded)

    @property
    def included_ids(self) -> frozenset[str]:
        return frozenset(d.vm_id for d in self.decisions if not d.is_effectively_excluded)

    def decision_for(self, vm_id: str) -> ExclusionDecision | None:
        return next((d for d in self.decisions if d.vm_id == vm_id), None)


def classify_exclusions(
    dataset: NormalizedDataset,
    overrides: OverrideLookup | None = None,
    rules: Iterable[ExclusionRule] | None = None,
) -> ExclusionReport:
    """Decide inclusion for every VM in the dataset (templates included)."""
    rules = tuple(load_exclusion_rules() if rules is None else rules)
    breakdown = dict.fromkeys(EXCLUSION_CATEGORIES, 0)
    multi = 0
    decisions: list[ExclusionDecision] = []
    for vm in dataset.vms:
        vm_id = get_vm_identifier(vm)
        matched = auto_exclusion_reasons(vm, rules)
        categories = tuple(dict.fromkeys(r.category for r in matched))
        for category in categories:
            breakdown[category] += 1
        if len(categories) > 1:
            multi += 1
        decisions.append(
            ExclusionDecision(
                vm_id=vm_id,
                vm_name=vm.vm_name,
                auto_excluded=bool(matched),
                reasons=tuple(r.label for r in matched),
                categories=categories,
                user_excluded=bool(overrides and overrides.is_excluded(vm_id)),
                user_included=bool(overrides and overrides.is_force_included(vm_id)),
            )
        )
    report = ExclusionReport(decisions=tuple(decisions), breakdown=breakdown, multi_match_count=multi)
    logger.debug(
        "auto-excluded %d of %d VMs (%d matched several categories)",
        report.auto_excluded_count,
        len(decisions),
        multi,
    )
    return report
