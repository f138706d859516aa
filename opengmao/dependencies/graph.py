"""
Multi-hop dependency chain.

Walks the dependency edges of an asset in both directions up to a maximum
depth. Upstream nodes get negative depths, downstream nodes positive ones;
``distance`` is the absolute value. Chains are memoized in the TTL cache.
"""

from opengmao.database.helpers.transactionManagement import transactional
from opengmao.database.helpers.identifiers import to_uuid
from opengmao.database.daos.asset_dao import AssetDao
from opengmao.database.daos.dependency_dao import DependencyDao
from opengmao.cache.ttl_cache import get_cached, set_cached, get_cache_key
from sqlalchemy.orm import Session
from typing import List, Set
import logging

logger = logging.getLogger("uvicorn")

DEFAULT_MAX_DEPTH = 3


def _node(asset, direction: str, depth: int, relationship: str) -> dict:
    return {
        "id": str(asset.id),
        "name": asset.name,
        "code": asset.code,
        "custom_name": asset.custom_name,
        "type": direction,
        "depth": depth,
        "distance": abs(depth),
        "relationship": relationship,
    }


def _walk(session: Session, dao: DependencyDao, asset_id, direction: str, current_depth: int,
          max_depth: int, visited: Set) -> List[dict]:
    if current_depth > max_depth:
        return []
    if direction == "upstream":
        edges = dao.fetchUpstream(session, asset_id)
        sign, default_relationship = -1, "feeds_into"
    else:
        edges = dao.fetchDownstream(session, asset_id)
        sign, default_relationship = 1, "receives_from"

    nodes = []
    for dependency, neighbour in edges:
        if neighbour.id in visited:
            logger.info(f"⚠️ Cycle detected at {neighbour.name}, skipping")
            continue
        visited.add(neighbour.id)
        nodes.append(_node(neighbour, direction, sign * current_depth,
                           dependency.dependency_type or default_relationship))
        nodes.extend(_walk(session, dao, neighbour.id, direction, current_depth + 1, max_depth, visited))
    return nodes


@transactional
def get_dependency_chain(session: Session, asset_id: str, max_depth: int = DEFAULT_MAX_DEPTH) -> dict:
    """
    Upstream and downstream chain of an asset.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    asset_id : str
        Asset at the centre of the chain.
    max_depth : int
        Number of hops followed in each direction.

    Returns
    -------
    dict
        {'target': {id, name, code, custom_name}, 'upstream': [...],
        'downstream': [...], 'total_nodes', 'max_depth_reached'}; node lists
        are sorted closest first. An unknown asset yields an empty chain named
        'Unknown'.
    """
    cache_key = get_cache_key(str(asset_id), max_depth)
    cached = get_cached(cache_key)
    if cached is not None:
        logger.info(f"💾 Cache HIT: {cache_key}")
        return cached

    asset_uuid = to_uuid(asset_id)
    target = AssetDao().fetchAssetById(session, asset_uuid)
    if target is None:
        return {
            "target": {"id": str(asset_id), "name": "Unknown", "code": None, "custom_name": None},
            "upstream": [],
            "downstream": [],
            "total_nodes": 0,
            "max_depth_reached": 0,
        }

    dao = DependencyDao()
    upstream = _walk(session, dao, asset_uuid, "upstream", 1, max_depth, {asset_uuid})
    downstream = _walk(session, dao, asset_uuid, "downstream", 1, max_depth, {asset_uuid})
    upstream.sort(key=lambda n: n["distance"])
    downstream.sort(key=lambda n: n["distance"])

    chain = {
        "target": {"id": str(target.id), "name": target.name, "code": target.code,
                   "custom_name": target.custom_name},
        "upstream": upstream,
        "downstream": downstream,
        "total_nodes": len(upstream) + len(downstream),
        "max_depth_reached": max([n["distance"] for n in upstream + downstream], default=0),
    }
    logger.info(f"🔗 Dependency chain of {target.name}: {len(upstream)} upstream, {len(downstream)} downstream")
    set_cached(cache_key, chain)
    return chain


def format_dependency_chain(chain: dict) -> str:
    """Render a chain for the chat system prompt; empty string when it has no nodes."""
    if not chain["total_nodes"]:
        return ""

    def hops(distance):
        return f"{distance} hop{'s' if distance > 1 else ''}"

    def alias(name):
        return f' ("{name}")' if name else ""

    width = chain["max_depth_reached"]
    lines = ["🔗 Process Chain (Multi-Hop Dependencies):", ""]
    for node in sorted(chain["upstream"], key=lambda n: -n["distance"]):
        indent = "  " * (width - node["distance"])
        lines.append(f"{indent}⬆️ {node['name']}{alias(node['custom_name'])} [{hops(node['distance'])} upstream]")
    target = chain["target"]
    lines.append(f"{'  ' * width}🎯 **{target['name']}{alias(target['custom_name'])}** ← YOU ARE HERE")
    for node in chain["downstream"]:
        indent = "  " * (width + node["distance"])
        lines.append(f"{indent}⬇️ {node['name']}{alias(node['custom_name'])} [{hops(node['distance'])} downstream]")

    lines += ["", "📊 Diagnostic Guidance:"]
    if chain["upstream"]:
        lines.append(f"• Upstream ({len(chain['upstream'])} equipment): Check supply/input quality issues")
        lines.append(f"  - Start with: {chain['upstream'][0]['name']} (closest upstream)")
    if chain["downstream"]:
        lines.append(f"• Downstream ({len(chain['downstream'])} equipment): Check backpressure/capacity issues")
        lines.append(f"  - Start with: {chain['downstream'][0]['name']} (closest downstream)")
    return "\n".join(lines) + "\n"
