# zn_resolver.py
#
# Look-up-or-create for named ZeroNorth objects (Targets, Policies, Applications, ...)
#
# The list endpoints do a case-insensitive *substring* search on ?name=, so every
# hit is narrowed locally before we count. 0 -> NotFound (or create), 1 -> use it,
# 2+ -> AmbiguousMatch. There is no tie-break.

import time, logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional, List, Callable
from zn_api import ZnClient, NotFound, AmbiguousMatch, CreateFailed, TransportError, ProtocolError, record_name, parse_list

log = logging.getLogger("zn.resolver")


class ResourceType(Enum):
    TARGET = "targets"
    POLICY = "policies"
    APPLICATION = "applications"
    INTEGRATION = "environments"
    SCENARIO = "scenarios"

    @property
    def label(self) -> str:
        return self.name.capitalize()

# Endpoints that inline related objects unless told not to.
_LIST_EXTRA = {ResourceType.APPLICATION: {"expand": "false"}, ResourceType.SCENARIO: {"expand": "false"}}


class MatchMode(Enum):
    EXACT = "exact"          # case-insensitive equality
    SUBSTRING = "substring"  # case-insensitive containment; "Foo" also hits "FooBar"

    def matches(self, wanted: str, candidate: Optional[str]) -> bool:
        if candidate is None: return False
        w, c = wanted.strip().casefold(), candidate.strip().casefold()
        return w == c if self is MatchMode.EXACT else w in c


@dataclass(frozen=True)
class ResourceQuery:
    resource_type: ResourceType
    name: str
    match: MatchMode = MatchMode.EXACT


@dataclass(frozen=True)
class ResourceMatch:
    id: str
    name: str


@dataclass(frozen=True)
class CreateSpec:
    resource_type: ResourceType
    name: str
    parent_id: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)

    def body(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name}
        if self.parent_id: out["environmentId"] = self.parent_id
        out.update(self.attributes)
        return out


def find(client: ZnClient, query: ResourceQuery) -> List[ResourceMatch]:
    """All candidates for query.name that survive local narrowing, in API order."""
    params = dict(_LIST_EXTRA.get(query.resource_type, {}), name=query.name)
    records, count = parse_list(client.get(f"/{query.resource_type.value}", params=params))
    out = []
    for rec in records:
        nm = record_name(rec)
        if rec.get("id") and query.match.matches(query.name, nm):
            out.append(ResourceMatch(id=str(rec["id"]), name=nm))
    log.debug("%s lookup '%s': %d raw, %d after %s narrowing", query.resource_type.label,
              query.name, count, len(out), query.match.value)
    return out


def _create(client: ZnClient, spec: CreateSpec) -> ResourceMatch:
    label = spec.resource_type.label
    log.info("Creating a %s with name '%s'...", label.lower(), spec.name)
    try:
        obj = client.post(f"/{spec.resource_type.value}", body=spec.body())
    except TransportError as e:
        raise CreateFailed(f"{label} '{spec.name}' creation failed", e.status, e.body) from e
    except ProtocolError as e:
        raise CreateFailed(f"{label} '{spec.name}' creation failed: {e}") from e
    rid = obj.get("id") if isinstance(obj, dict) else None
    if not rid:
        raise CreateFailed(f"{label} '{spec.name}' creation returned no id: {str(obj)[:400]}")
    created = ResourceMatch(id=str(rid), name=record_name(obj) or spec.name)
    log.info("%s '%s' created with ID '%s'.", label, created.name, created.id)
    return created


def _pick(query: ResourceQuery, hits: List[ResourceMatch]) -> Optional[ResourceMatch]:
    if len(hits) > 1:
        raise AmbiguousMatch(query.name, hits)
    return hits[0] if hits else None


def resolve(client: ZnClient, query: ResourceQuery, create_spec: Optional[CreateSpec] = None,
            settle: float = 0.0, settle_rounds: int = 5,
            sleep: Callable[[float], None] = time.sleep) -> ResourceMatch:
    """
    Find exactly one object named query.name, creating it from create_spec when none exists.

    settle > 0 looks up twice, `settle` seconds apart, and only trusts the answer when
    both lookups agree. It narrows the window for a concurrent creator, it doesn't close it.
    """
    label = query.resource_type.label
    if query.match is MatchMode.SUBSTRING:
        log.warning("Substring matching for '%s': any %s whose name contains it will count.", query.name, label)
    if create_spec is not None and create_spec.resource_type is not query.resource_type:
        raise ValueError(f"create_spec is for {create_spec.resource_type.label}, query is for {label}")

    if settle > 0:
        rounds = max(1, settle_rounds)
        for _ in range(rounds):
            log.info("Looking up '%s'. Try #1...", query.name)
            first = _pick(query, find(client, query))
            log.info("Sleeping for %s seconds...", settle); sleep(settle)
            log.info("Looking up '%s'. Try #2...", query.name)
            found = _pick(query, find(client, query))
            if first == found: break
            log.info("Hmmm...let's try that again...")
        else:
            raise AmbiguousMatch(query.name, [m for m in (first, found) if m],
                                 f"Lookups for the {label.lower()} name '{query.name}' disagreed after {rounds} rounds.")
    else:
        found = _pick(query, find(client, query))

    if found:
        log.info("%s '%s' found with ID '%s'.", label, found.name, found.id)
        return found
    log.info("Did not find %s '%s'.", label.lower(), query.name)
    if create_spec is None:
        raise NotFound(f"{label} '{query.name}' not found.")
    return _create(client, create_spec)


def get_by_id(client: ZnClient, resource_type: ResourceType, rid: str,
              params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Fetch one object by id and make sure the API handed back the one we asked for."""
    try:
        obj = client.get(f"/{resource_type.value}/{rid}", params=params)
    except TransportError as e:
        if e.status == 404: raise NotFound(f"{resource_type.label} ID '{rid}' not found.") from e
        raise
    if not isinstance(obj, dict) or str(obj.get("id")) != rid:
        raise NotFound(f"{resource_type.label} ID '{rid}' not found.")
    return obj
