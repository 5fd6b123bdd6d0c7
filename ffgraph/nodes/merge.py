"""Merging of two serialized graphs."""

import copy
import logging
import random
from typing import Optional

logger = logging.getLogger("ffgraph")

DEFAULT_JITTER = 200


def _link_fields(link) -> Optional[list]:
    if isinstance(link, dict):
        try:
            return [link["id"], link["origin_id"], link["origin_slot"],
                    link["target_id"], link["target_slot"], link.get("type")]
        except KeyError:
            return None
    if isinstance(link, (list, tuple)) and len(link) >= 6:
        return list(link[:6])
    return None


def merge_graphs(
    a: dict,
    b: dict,
    jitter: int = DEFAULT_JITTER,
    rng: Optional[random.Random] = None,
) -> dict:
    """Merge serialized graph ``b`` into a copy of serialized graph ``a``.

    Nodes of ``b`` get fresh ids above ``a.last_node_id`` and are shifted
    by one random offset in ``[0, jitter)`` on each axis. Links of ``b``
    get fresh ids above every link id of ``a`` and are remapped onto the
    new node ids. Slot link fields of the copied nodes are rebuilt from
    the remapped links; whatever ``b`` stored inline is ignored.

    Args:
        a: Serialized target graph. Not modified.
        b: Serialized graph to merge in. Not modified.
        jitter: Upper bound of the random position offset.
        rng: Random source, for reproducible offsets.

    Returns:
        The merged serialized graph.
    """
    rng = rng or random.Random()
    merged = copy.deepcopy(a)
    merged.setdefault("nodes", [])
    merged.setdefault("links", [])

    offset_x = int(rng.random() * jitter) if jitter > 0 else 0
    offset_y = int(rng.random() * jitter) if jitter > 0 else 0

    a_link_ids = [f[0] for f in (_link_fields(l) for l in merged["links"]) if f is not None]
    a_node_ids = [n.get("id", 0) for n in merged["nodes"]]
    next_node_id = max([int(a.get("last_node_id") or 0)] + a_node_ids) + 1
    next_link_id = max([int(a.get("last_link_id") or 0)] + a_link_ids) + 1

    id_map: dict = {}
    new_nodes = []
    for raw in b.get("nodes") or []:
        node = copy.deepcopy(raw)
        id_map[node.get("id")] = next_node_id
        node["id"] = next_node_id
        next_node_id += 1

        pos = node.get("pos") or [0, 0]
        node["pos"] = [pos[0] + offset_x, pos[1] + offset_y]
        for slot in node.get("inputs") or []:
            slot["link"] = None
        for slot in node.get("outputs") or []:
            slot["links"] = []
        new_nodes.append(node)

    by_id = {node["id"]: node for node in new_nodes}
    new_links = []
    for raw in b.get("links") or []:
        fields = _link_fields(raw)
        if fields is None:
            logger.warning("Dropping malformed link while merging: %s", raw)
            continue
        _, origin_id, origin_slot, target_id, target_slot, link_type = fields
        if origin_id not in id_map or target_id not in id_map:
            logger.warning("Dropping link %s with a missing endpoint while merging", fields[0])
            continue

        origin = by_id[id_map[origin_id]]
        target = by_id[id_map[target_id]]
        outputs = origin.get("outputs") or []
        inputs = target.get("inputs") or []
        if not (0 <= origin_slot < len(outputs) and 0 <= target_slot < len(inputs)):
            logger.warning("Dropping link %s with a missing slot while merging", fields[0])
            continue
        if inputs[target_slot].get("link") is not None:
            logger.warning("Dropping duplicate link %s into one input while merging", fields[0])
            continue

        link_id = next_link_id
        next_link_id += 1
        outputs[origin_slot]["links"].append(link_id)
        inputs[target_slot]["link"] = link_id
        new_links.append([link_id, origin["id"], origin_slot, target["id"], target_slot, link_type])

    merged["nodes"].extend(new_nodes)
    merged["links"].extend(new_links)
    merged["last_node_id"] = next_node_id - 1
    merged["last_link_id"] = next_link_id - 1
    return merged
